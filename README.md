# etreclient

A small Python client for the Etre entity API. Each client is tied to one
entity type and offers queries, lookups by id, bulk and single writes, and
label management. Failures are raised as exceptions that derive from
`EtreError`. A `MockEntityClient` with pluggable callbacks is included for
testing code that uses a client.

## Installation

```
pip install etreclient
```

With the test dependencies:

```
pip install "etreclient[test]"
```

## Usage

```python
import requests

from etreclient.client import new_entity_client
from etreclient.types import EntityNotFoundError, QueryFilter, Set

nodes = new_entity_client("node", "http://localhost:3848", requests.Session())

# Query entities. The query string is always URL-escaped.
hosts = nodes.query("env=prod", QueryFilter(return_labels=["hostname"], distinct=True))

# Get one entity by its internal id.
try:
    entity = nodes.get("abc")
except EntityNotFoundError:
    entity = None

# Write operations return a WriteResult.
result = nodes.insert([{"hostname": "db1"}])
for write in result.writes:
    print(write.entity_id, write.uri)

nodes.update("hostname=db1", {"env": "staging"})
nodes.update_one("abc", {"env": "prod"})
nodes.delete("env=staging")
nodes.delete_one("abc")

# Labels
print(nodes.labels("abc"))
nodes.delete_label("abc", "env")
```

Entities are plain dictionaries. If no session is given, the client creates
its own `requests.Session`. Requests go to `addr + "/api/v1" + endpoint` and
carry the headers `Content-Type: application/json` and `X-Etre-Version`.

A write that the API answers with a `WriteResult` holding writes or an error
returns that result; check `result.error` (an `ErrorDetail` with `type`,
`message` and `entity_id`) for errors the API reports this way.
`WriteResult.is_zero()` is true when it holds neither writes nor an error.
`WriteResult`, `Write` and `ErrorDetail` convert to and from the API's JSON
form with `from_dict` and `to_dict`.

### Sets and traces

`with_set` and `with_trace` return a new client and leave the original
unchanged. A set whose size is greater than zero is added to every write as
the URL parameters `setId`, `setOp` and `setSize`; a trace string
(`app=foo,host=bar`) is sent with every request in the `X-Etre-Trace` header.

```python
batch = nodes.with_set(Set(op="setop", id="setid", size=3))
batch.delete("foo=bar")

traced = nodes.with_trace("app=inventory,host=web1")
```

### Configuration, retries and timeouts

```python
from etreclient.client import EntityClientConfig, HTTPEntityClient

client = HTTPEntityClient.from_config(
    EntityClientConfig(
        entity_type="node",
        addr="http://localhost:3848",
        session=requests.Session(),
        retry=3,
        retry_wait=1.0,       # seconds between tries
        retry_logging=True,   # log each failed try as a warning
        query_timeout=5.0,    # seconds, sent in X-Etre-Query-Timeout
    )
)
```

The same options can be passed as keyword arguments to `HTTPEntityClient`.
A request is retried on network errors and server errors, up to `retry`
extra times; it is not retried when the server answers with a 4xx status.
`query_timeout` is sent to the API as a duration string such as `5s` or
`500ms`. `debug=True` sets the `etreclient.client` logger to `DEBUG`.

### Testing code that uses the client

`MockEntityClient` takes optional callbacks, one for each client method
(`query_func`, `get_func`, `insert_func`, and so on). A method without a
callback returns an empty result; `with_set` and `with_trace` without a
callback return the mock itself.

```python
from etreclient.mock import MockEntityClient

calls = []
mock = MockEntityClient(query_func=lambda q, f: calls.append(q) or [{"_id": "abc"}])
assert mock.query("x=y") == [{"_id": "abc"}]
assert calls == ["x=y"]
```

## Errors

All errors derive from `etreclient.types.EtreError`:

- `NoQueryError`: empty query string
- `IdNotSetError`: empty entity id
- `NoEntityError`: nothing to insert, or an empty patch
- `NoLabelError`: empty label name
- `EntityNotFoundError`: the API answered 404
- `ClientTimeoutError`: the HTTP request timed out
- `RequestError`: any other client, server or network failure; its
  `status_code` holds the HTTP status when there was one

## What this package does not do

It is only the entity client. It has no client for a change feed of entity
events, no server, and no command-line tool.