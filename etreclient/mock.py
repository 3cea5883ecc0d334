"""Entity client with pluggable callbacks, for tests."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from .types import Entity, QueryFilter, Set, WriteResult


@dataclass
class MockEntityClient:
    """Calls the matching callback if one is set, else returns an empty result."""

    query_func: Optional[Callable[[str, Optional[QueryFilter]], list]] = None
    get_func: Optional[Callable[[str], Entity]] = None
    insert_func: Optional[Callable[[list], WriteResult]] = None
    update_func: Optional[Callable[[str, Entity], WriteResult]] = None
    update_one_func: Optional[Callable[[str, Entity], WriteResult]] = None
    delete_func: Optional[Callable[[str], WriteResult]] = None
    delete_one_func: Optional[Callable[[str], WriteResult]] = None
    labels_func: Optional[Callable[[str], list]] = None
    delete_label_func: Optional[Callable[[str, str], WriteResult]] = None
    entity_type_func: Optional[Callable[[], str]] = None
    with_set_func: Optional[Callable[[Set], Any]] = None
    with_trace_func: Optional[Callable[[str], Any]] = None

    def query(self, query: str, filter_: QueryFilter | None = None) -> list[Entity]:
        if self.query_func is not None:
            return self.query_func(query, filter_)
        return []

    def get(self, entity_id: str) -> Entity:
        if self.get_func is not None:
            return self.get_func(entity_id)
        return {}

    def insert(self, entities: list[Entity]) -> WriteResult:
        if self.insert_func is not None:
            return self.insert_func(entities)
        return WriteResult()

    def update(self, query: str, patch: Entity) -> WriteResult:
        if self.update_func is not None:
            return self.update_func(query, patch)
        return WriteResult()

    def update_one(self, entity_id: str, patch: Entity) -> WriteResult:
        if self.update_one_func is not None:
            return self.update_one_func(entity_id, patch)
        return WriteResult()

    def delete(self, query: str) -> WriteResult:
        if self.delete_func is not None:
            return self.delete_func(query)
        return WriteResult()

    def delete_one(self, entity_id: str) -> WriteResult:
        if self.delete_one_func is not None:
            return self.delete_one_func(entity_id)
        return WriteResult()

    def labels(self, entity_id: str) -> list[str]:
        if self.labels_func is not None:
            return self.labels_func(entity_id)
        return []

    def delete_label(self, entity_id: str, label: str) -> WriteResult:
        if self.delete_label_func is not None:
            return self.delete_label_func(entity_id, label)
        return WriteResult()

    def entity_type(self) -> str:
        if self.entity_type_func is not None:
            return self.entity_type_func()
        return ""

    def with_set(self, set_: Set) -> Any:
        if self.with_set_func is not None:
            return self.with_set_func(set_)
        return self

    def with_trace(self, trace: str) -> Any:
        if self.with_trace_func is not None:
            return self.with_trace_func(trace)
        return self