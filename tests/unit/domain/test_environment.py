"""Unit tests for environment state models."""

from __future__ import annotations

from bluegreen.domain.models.environment import Color, EnvironmentState, HealthStatus


class TestColor:
    def test_inverse(self) -> None:
        assert Color.BLUE.inverse() == Color.GREEN
        assert Color.GREEN.inverse() == Color.BLUE

    def test_unknown_has_no_inverse(self) -> None:
        assert Color.UNKNOWN.inverse() is None


class TestEnvironmentState:
    def test_defaults(self) -> None:
        state = EnvironmentState(name="prod")
        assert state.active_color == Color.UNKNOWN
        assert state.health_status == HealthStatus.UNKNOWN
        assert state.current_version == ""
        assert state.last_deployment_id is None

    def test_json_roundtrip_keeps_revision(self) -> None:
        state = EnvironmentState(name="prod", active_color=Color.BLUE, revision=7)
        restored = EnvironmentState.model_validate_json(state.model_dump_json())
        assert restored.revision == 7
        assert restored.active_color == Color.BLUE
