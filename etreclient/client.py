"""HTTP client bound to one Etre entity type."""

from __future__ import annotations

import copy
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Protocol, TypeVar
from urllib.parse import quote, quote_plus

import requests

from .types import (
    ClientTimeoutError,
    Entity,
    EntityNotFoundError,
    ErrorDetail,
    EtreError,
    IdNotSetError,
    NoEntityError,
    NoLabelError,
    NoQueryError,
    QueryFilter,
    RequestError,
    Set,
    WriteResult,
)

API_ROOT = "/api/v1"
VERSION = "0.1.0"
VERSION_HEADER = "X-Etre-Version"
QUERY_TIMEOUT_HEADER = "X-Etre-Query-Timeout"
TRACE_HEADER = "X-Etre-Trace"

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


class EntityClient(Protocol):
    """A client bound to a single entity type."""

    def query(self, query: str, filter_: QueryFilter | None = None) -> list[Entity]: ...

    def get(self, entity_id: str) -> Entity: ...

    def insert(self, entities: list[Entity]) -> WriteResult: ...

    def update(self, query: str, patch: Entity) -> WriteResult: ...

    def update_one(self, entity_id: str, patch: Entity) -> WriteResult: ...

    def delete(self, query: str) -> WriteResult: ...

    def delete_one(self, entity_id: str) -> WriteResult: ...

    def labels(self, entity_id: str) -> list[str]: ...

    def delete_label(self, entity_id: str, label: str) -> WriteResult: ...

    def entity_type(self) -> str: ...

    def with_set(self, set_: Set) -> EntityClient: ...

    def with_trace(self, trace: str) -> EntityClient: ...


EntityClients = dict[str, EntityClient]


@dataclass
class EntityClientConfig:
    """Required and optional settings for an HTTPEntityClient."""

    entity_type: str
    addr: str
    session: requests.Session | None = None
    retry: int = 0
    retry_wait: float = 0.0
    retry_logging: bool = False
    query_timeout: float = 0.0
    debug: bool = False


class _AttemptFailed(Exception):
    """One request attempt failed; done means retrying will not help."""

    def __init__(self, error: EtreError, done: bool) -> None:
        super().__init__(str(error))
        self.error = error
        self.done = done


def _trim(value: int, unit: int) -> str:
    whole, frac = divmod(value, unit)
    if not frac:
        return str(whole)
    digits = len(str(unit)) - 1
    return f"{whole}.{frac:0{digits}d}".rstrip("0")


def _format_duration(seconds: float) -> str:
    """Format seconds the way the API parses durations, e.g. 500ms or 1m30s."""
    ns = round(seconds * 1_000_000_000)
    if ns == 0:
        return "0s"
    sign = "-" if ns < 0 else ""
    ns = abs(ns)
    if ns < 1_000_000_000:
        for unit, size in (("ms", 1_000_000), ("µs", 1_000), ("ns", 1)):
            if ns >= size:
                return sign + _trim(ns, size) + unit
    hours, rem = divmod(ns, 3_600_000_000_000)
    minutes, rem = divmod(rem, 60_000_000_000)
    out = sign
    if hours:
        out += f"{hours}h"
    if hours or minutes:
        out += f"{minutes}m"
    return out + _trim(rem, 1_000_000_000) + "s"


def _no_response(status: int, done: bool) -> _AttemptFailed:
    return _AttemptFailed(
        RequestError(f"Server error: HTTP status {status}, no response (check API logs)", status),
        done,
    )


def _read_error(status: int, body: bytes) -> _AttemptFailed:
    done = 400 <= status < 500
    if status == 404:
        return _AttemptFailed(EntityNotFoundError(), done)
    if not body:
        return _no_response(status, done)
    text = body.decode("utf-8", errors="replace")
    try:
        data = json.loads(body)
    except ValueError as exc:
        data, reason = None, str(exc)
    else:
        reason = "not a JSON object"
    if not isinstance(data, dict):
        return _AttemptFailed(
            RequestError(
                f"Server error: HTTP status {status}, cannot decode response ({reason}): {text}",
                status,
            ),
            done,
        )
    detail = ErrorDetail.from_dict(data)
    if not detail.type or not detail.message:
        return _AttemptFailed(
            RequestError(f"Server error: HTTP status {status}, unknown response: {text}", status),
            done,
        )
    kind = "Server error" if status >= 500 else "Client error"
    return _AttemptFailed(
        RequestError(f"{kind}: {detail.type}: {detail.message} (HTTP status {status})", status),
        done,
    )


def _decode(status: int, body: bytes) -> Any:
    try:
        return json.loads(body)
    except ValueError as exc:
        raise _AttemptFailed(RequestError(f"cannot decode response: {exc}", status), False) from None


class HTTPEntityClient:
    """Entity client that talks to the Etre API over HTTP."""

    def __init__(
        self,
        entity_type: str,
        addr: str,
        session: requests.Session | None = None,
        *,
        retry: int = 0,
        retry_wait: float = 0.0,
        retry_logging: bool = False,
        query_timeout: float = 0.0,
    ) -> None:
        self._entity_type = entity_type
        self._addr = addr
        self._session = session if session is not None else requests.Session()
        self._retry = retry
        self._retry_wait = retry_wait
        self._retry_logging = retry_logging
        self._query_timeout = query_timeout
        self._set: Set | None = None
        self._trace = ""

    @classmethod
    def from_config(cls, config: EntityClientConfig) -> HTTPEntityClient:
        if config.debug:
            logger.setLevel(logging.DEBUG)
        return cls(
            config.entity_type,
            config.addr,
            config.session,
            retry=config.retry,
            retry_wait=config.retry_wait,
            retry_logging=config.retry_logging,
            query_timeout=config.query_timeout,
        )

    def with_set(self, set_: Set) -> HTTPEntityClient:
        """Return a copy of this client that sends the set with every write."""
        clone = copy.copy(self)
        clone._set = set_
        return clone

    def with_trace(self, trace: str) -> HTTPEntityClient:
        """Return a copy of this client that sends the trace with every request."""
        clone = copy.copy(self)
        clone._trace = trace
        return clone

    def entity_type(self) -> str:
        return self._entity_type

    def query(self, query: str, filter_: QueryFilter | None = None) -> list[Entity]:
        """Return the entities that match the query."""
        if not query:
            raise NoQueryError()
        filter_ = filter_ or QueryFilter()
        logger.debug("query=%r, filter=%r", query, filter_)
        path = f"/entities/{self._entity_type}?query={quote_plus(query, safe='')}"
        if filter_.return_labels:
            path += "&labels=" + ",".join(filter_.return_labels)
        if filter_.distinct:
            path += "&distinct"

        def attempt() -> list[Entity]:
            status, body = self._do("GET", path, None)
            if status != 200:
                raise _read_error(status, body)
            if not body:
                return []
            data = _decode(status, body)
            return data if data is not None else []

        return self._with_retry(attempt)

    def get(self, entity_id: str) -> Entity:
        """Return one entity by its internal ID."""
        if not entity_id:
            raise IdNotSetError()
        path = f"/entity/{self._entity_type}/{quote(entity_id, safe='')}"

        def attempt() -> Entity:
            status, body = self._do("GET", path, None)
            if status != 200:
                raise _read_error(status, body)
            if not body:
                return {}
            data = _decode(status, body)
            return data if data is not None else {}

        return self._with_retry(attempt)

    def insert(self, entities: list[Entity]) -> WriteResult:
        """Create the given entities."""
        if not entities:
            raise NoEntityError()
        return self._write(entities, "POST", f"/entities/{self._entity_type}")

    def update(self, query: str, patch: Entity) -> WriteResult:
        """Patch every entity that matches the query."""
        if not query:
            raise NoQueryError()
        logger.debug("query=%r, patch=%r", query, patch)
        if not patch:
            raise NoEntityError()
        endpoint = f"/entities/{self._entity_type}?query={quote_plus(query, safe='')}"
        return self._write(patch, "PUT", endpoint)

    def update_one(self, entity_id: str, patch: Entity) -> WriteResult:
        """Patch one entity by its internal ID."""
        if not entity_id:
            raise IdNotSetError()
        logger.debug("_id=%s, patch=%r", entity_id, patch)
        return self._write(patch, "PUT", f"/entity/{self._entity_type}/{entity_id}")

    def delete(self, query: str) -> WriteResult:
        """Remove every entity that matches the query."""
        if not query:
            raise NoQueryError()
        logger.debug("query=%r", query)
        endpoint = f"/entities/{self._entity_type}?query={quote_plus(query, safe='')}"
        return self._write(None, "DELETE", endpoint)

    def delete_one(self, entity_id: str) -> WriteResult:
        """Remove one entity by its internal ID."""
        if not entity_id:
            raise IdNotSetError()
        logger.debug("_id=%s", entity_id)
        return self._write(None, "DELETE", f"/entity/{self._entity_type}/{entity_id}")

    def labels(self, entity_id: str) -> list[str]:
        """Return all labels of one entity."""
        if not entity_id:
            raise IdNotSetError()
        path = f"/entity/{self._entity_type}/{entity_id}/labels"

        def attempt() -> list[str]:
            status, body = self._do("GET", path, None)
            if status != 200:
                raise _read_error(status, body)
            data = _decode(status, body)
            return data if data is not None else []

        return self._with_retry(attempt)

    def delete_label(self, entity_id: str, label: str) -> WriteResult:
        """Remove one label from one entity."""
        if not entity_id:
            raise IdNotSetError()
        if not label:
            raise NoLabelError()
        logger.debug("_id=%s, label=%s", entity_id, label)
        endpoint = f"/entity/{self._entity_type}/{entity_id}/labels/{label}"
        return self._write(None, "DELETE", endpoint)

    def _write(self, payload: Any, method: str, endpoint: str) -> WriteResult:
        data = json.dumps(payload).encode("utf-8") if payload is not None else None

        if self._set is not None and self._set.size > 0:
            sep = "&" if "?" in endpoint else "?"
            endpoint += f"{sep}setId={self._set.id}&setOp={self._set.op}&setSize={self._set.size}"

        def attempt() -> WriteResult:
            status, body = self._do(method, endpoint, data)
            done = 400 <= status < 500
            if not body:
                raise _no_response(status, done)
            try:
                decoded = json.loads(body)
                if not isinstance(decoded, dict):
                    raise ValueError("not a JSON object")
            except ValueError as exc:
                raise _AttemptFailed(
                    RequestError(f"cannot decode write result: {exc}", status), done
                ) from None
            result = WriteResult.from_dict(decoded)
            logger.debug("write result: %r", result)
            if status == 404:
                raise _AttemptFailed(EntityNotFoundError(), done)
            if result.is_zero() and status not in (200, 201):
                text = body.decode("utf-8", errors="replace")
                kind = "Server error" if status >= 500 else "Client error"
                raise _AttemptFailed(
                    RequestError(f"{kind}: HTTP status {status}, response: '{text}'", status),
                    done,
                )
            return result

        return self._with_retry(attempt)

    def _do(self, method: str, endpoint: str, payload: bytes | None) -> tuple[int, bytes]:
        url = self._addr + API_ROOT + endpoint
        headers = {"Content-Type": "application/json", VERSION_HEADER: VERSION}
        if self._query_timeout > 0:
            headers[QUERY_TIMEOUT_HEADER] = _format_duration(self._query_timeout)
        if self._trace:
            headers[TRACE_HEADER] = self._trace
        logger.debug("request: %s %s", method, url)
        try:
            resp = self._session.request(method, url, data=payload, headers=headers)
        except requests.exceptions.Timeout:
            raise _AttemptFailed(ClientTimeoutError(), False) from None
        except requests.exceptions.RequestException as exc:
            logger.debug("request error: %s", exc)
            raise _AttemptFailed(RequestError(f"request failed: {exc}"), False) from None
        logger.debug("response: %s", resp.status_code)
        return resp.status_code, resp.content

    def _with_retry(self, attempt: Callable[[], _T]) -> _T:
        tries = 1 + self._retry
        for try_no in range(1, tries + 1):
            try:
                return attempt()
            except _AttemptFailed as failed:
                if failed.done or try_no == tries:
                    raise failed.error from None
                if self._retry_logging:
                    logger.warning(
                        "Error querying Etre: %s (try %d of %d, retry in %ss)",
                        failed.error, try_no, tries, self._retry_wait,
                    )
                time.sleep(self._retry_wait)
        raise AssertionError("unreachable")


def new_entity_client(
    entity_type: str, addr: str, session: requests.Session | None = None
) -> HTTPEntityClient:
    """Create a client for one entity type at the given API address."""
    return HTTPEntityClient(entity_type, addr, session)