"""Unit tests for the subprocess hook runner."""

from __future__ import annotations

import sys

import pytest

from bluegreen.domain.errors import HookFailedError
from bluegreen.infrastructure.hooks.runner import SubprocessHookRunner


def _python(code: str) -> str:
    return f'"{sys.executable}" -c "{code}"'


class TestSubprocessHookRunner:
    @pytest.mark.asyncio
    async def test_success_returns_stdout(self) -> None:
        runner = SubprocessHookRunner()
        output = await runner.run(
            _python("import os; print(os.environ['DEPLOY_VERSION'])"),
            "pre_deploy",
            {"DEPLOY_VERSION": "v2.0"},
            timeout=10,
        )
        assert output.strip() == "v2.0"

    @pytest.mark.asyncio
    async def test_non_zero_exit(self) -> None:
        runner = SubprocessHookRunner()
        with pytest.raises(HookFailedError) as exc_info:
            await runner.run(_python("import sys; sys.exit(2)"), "post_deploy", {}, timeout=10)
        assert exc_info.value.phase == "post_deploy"
        assert exc_info.value.code == "HOOK_FAILED"
        assert "status 2" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        runner = SubprocessHookRunner()
        with pytest.raises(HookFailedError, match="timed out"):
            await runner.run(_python("import time; time.sleep(5)"), "pre_rollback", {}, timeout=0.2)

    @pytest.mark.asyncio
    async def test_missing_binary(self) -> None:
        runner = SubprocessHookRunner()
        with pytest.raises(HookFailedError, match="could not be started"):
            await runner.run("definitely-not-a-real-binary-xyz", "pre_deploy", {}, timeout=5)

    @pytest.mark.asyncio
    async def test_working_directory(self, tmp_path) -> None:
        runner = SubprocessHookRunner(cwd=str(tmp_path))
        output = await runner.run(_python("import os; print(os.getcwd())"), "post_rollback", {}, timeout=10)
        assert output.strip() == str(tmp_path.resolve())
