# keskit

Building blocks for a client of a key encryption service, and for reading and
checking that service's YAML server configuration.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `keskit.key`: `DEK`, which holds a data encryption key as plaintext and as
  ciphertext. `CCP` pairs a ciphertext with its context, and `PCP` pairs a
  plaintext with its context. The module also has `KeyInfo` and `KeyIterator`.
  `KeyIterator` reads a stream of JSON objects from a binary or text reader and
  yields a `KeyInfo` for each one. An entry that carries an `error` field
  raises. `write_to(writer)` re-encodes the remaining entries to a binary writer
  and returns the number of bytes written. Calling it after `close()` raises
  `ValueError`.
- `keskit.policy`: `Policy`, whose `allow` and `deny` lists hold glob patterns.
  The module also has `PolicyInfo` and `PolicyIterator`, which behaves like
  `KeyIterator`.
- `keskit.log`: `ErrorStream` yields `ErrorEvent` values and `AuditStream`
  yields `AuditEvent` values. Both read a JSON stream in the same way and offer
  `write_to`, `close` and use as a context manager. `CountingWriter` wraps a
  writer and counts the bytes written through it.
- `keskit.metric`: `Metric` is a server metric snapshot. `Metric.from_dict`
  builds one from the server's JSON field names, and `Metric.request_n()` sums
  the successful, erroneous and failed requests. The module also has `State`
  and `API`.
- `keskit.retry`: `RetryClient` is built on a `requests.Session`. Its
  `send(method, endpoints, path, body, *options)` starts at a random endpoint
  and tries each endpoint in turn until one answers. `do(request)` retries up
  to two times, after a random delay of 0.2 to 1 seconds, on temporary network
  errors (timeouts, dropped connections) and on `503` responses. If the error
  is still temporary after the last retry, it raises `TemporaryNetworkError`.
  Request bodies must be seekable. `retry_body`, `with_header` and
  `is_temporary` are the helpers behind the client.
- `keskit.vault.config`: `Config` holds the settings of a Vault K/V key store,
  with `AppRole` and `Kubernetes` credentials. `clone()` returns a copy, and
  `set_defaults()` fills empty fields: engine `kv`, API version `v1`, a 5 s
  retry and Kubernetes engine `kubernetes`.
- `keskit.vault.iterator`: `ListingIterator` yields the names in a Vault key
  listing and skips entries that end in `/`.
- `keskit.yml.types`: `String`, `Identity` and `Duration` are configuration
  values that keep their raw text and expand environment references when
  parsed. A value is expanded only when, after trimming, it has the form
  `${NAME}`. A bare `$NAME` is left as it is. `replace` does that expansion,
  and `parse_duration` parses durations such as `300ms`, `1.5h` or `2h45m`.
  Values that cannot be decoded raise `ConfigTypeError`.
- `keskit.yml.server_config`: `ServerConfig` covers every field of the server
  configuration file. `ServerConfig.from_dict` decodes a parsed YAML document,
  and `backends()` lists each key store type with its endpoint.
- `keskit.yml.legacy`: `migrate_v0135`, `migrate_v0140` and `migrate_v0170`
  decode configurations in older layouts into a `ServerConfig`.
- `keskit.yml.config`: `unmarshal_server_config` decodes YAML. Plain scalars
  keep their text, so `on` stays `"on"`. When the current layout fails with a
  type error, it tries the older layouts. `read_server_config(filename)` reads
  a file, fills defaults and validates the result. The defaults are a cache
  expiry of 5 min or 30 s unused, audit log `off`, error log `on`, the Vault
  engines and retries, and the GCP endpoint. If the Vault Kubernetes `jwt` names
  an existing file, the file's content replaces the value. Validation raises
  `ValueError` in these cases:
  - an admin identity appears among the TLS proxies or in a policy;
  - an identity is assigned to more than one policy;
  - the log switch is something other than `on` or `off`;
  - more than one key store is configured;
  - both AppRole and Kubernetes Vault credentials are given.

## Examples

Iterating over a key listing:

```python
import io
from keskit.key import KeyIterator

stream = io.BytesIO(b'{"name":"my-key"}\n{"name":"other-key"}\n')
with KeyIterator(stream) as keys:
    for info in keys:
        print(info.name)
```

Reading a server configuration file:

```python
from keskit.yml.config import read_server_config

config = read_server_config("server-config.yml")
print(config.address.value)
for backend in config.backends():
    if backend.endpoint:
        print(backend.type, backend.endpoint)
```

## What this package does not do

There is no key server here and no high-level client for the server's API. No
class creates, encrypts with or deletes keys on a server. The package has no
command-line program. Nothing connects to Vault or to any other key store.
`keskit.vault` only describes a Vault store's settings and walks a listing. You
supply the HTTP calls through `RetryClient` and feed the responses to the
iterators and streams.