"""State store implementations."""

from bluegreen.infrastructure.persistence.repositories.in_memory import InMemoryStateStore
from bluegreen.infrastructure.persistence.repositories.json_file import JsonFileStateStore
from bluegreen.infrastructure.persistence.repositories.state_store import (
    SqlAlchemyStateStore,
)


__all__ = [
    "InMemoryStateStore",
    "JsonFileStateStore",
    "SqlAlchemyStateStore",
]
