"""Data types and errors shared by Etre entity clients."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

Entity = dict[str, Any]


class EtreError(Exception):
    """Base class of every error raised by an entity client."""

    default_message = "etre error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class NoQueryError(EtreError):
    """A method that needs a query string was given an empty one."""

    default_message = "empty query string"


class IdNotSetError(EtreError):
    """A method that needs an entity ID was given an empty one."""

    default_message = "entity id not set"


class NoEntityError(EtreError):
    """A write was given no entities or an empty patch."""

    default_message = "no entity given"


class NoLabelError(EtreError):
    """A label operation was given an empty label."""

    default_message = "empty label"


class EntityNotFoundError(EtreError):
    """The API reported that the entity does not exist."""

    default_message = "entity not found"


class ClientTimeoutError(EtreError):
    """The HTTP request to the API timed out."""

    default_message = "client timeout waiting for API response"


class RequestError(EtreError):
    """The request failed on the network or the API returned an error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class ErrorDetail:
    """An error reported by the API in a response body."""

    type: str = ""
    message: str = ""
    entity_id: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ErrorDetail:
        return cls(
            type=str(data.get("type") or ""),
            message=str(data.get("message") or ""),
            entity_id=str(data.get("entityId") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type, "message": self.message}
        if self.entity_id:
            out["entityId"] = self.entity_id
        return out


@dataclass(frozen=True)
class Set:
    """A set of related writes, sent with every write of a client."""

    op: str
    id: str
    size: int = 0


@dataclass
class QueryFilter:
    """Options that narrow what a query returns."""

    return_labels: list[str] = field(default_factory=list)
    distinct: bool = False


@dataclass
class Write:
    """One entity written by a write operation."""

    entity_id: str = ""
    uri: str = ""
    diff: Entity | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Write:
        return cls(
            entity_id=str(data.get("entityId") or ""),
            uri=str(data.get("uri") or ""),
            diff=data.get("diff") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"entityId": self.entity_id}
        if self.uri:
            out["uri"] = self.uri
        if self.diff:
            out["diff"] = dict(self.diff)
        return out


@dataclass
class WriteResult:
    """The result of a write: the entities written and any API error."""

    writes: list[Write] = field(default_factory=list)
    error: ErrorDetail | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WriteResult:
        writes = [Write.from_dict(item) for item in data.get("writes") or []]
        error_data = data.get("error")
        error = ErrorDetail.from_dict(error_data) if isinstance(error_data, dict) else None
        return cls(writes=writes, error=error)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"writes": [w.to_dict() for w in self.writes]}
        if self.error is not None:
            out["error"] = self.error.to_dict()
        return out

    def is_zero(self) -> bool:
        """True when the result holds neither writes nor an error."""
        return not self.writes and self.error is None