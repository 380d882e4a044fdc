# labkit

Small building blocks for distributed-systems lab work:

- **`labkit.resilient`**: decorators that wrap a callable with no arguments in a
  resilience policy (`with_circuit_breaker`, `with_debounce_first`,
  `with_load_shedding`, `with_rate_limiter`, `with_retry`, `with_timeout`,
  `with_timeout_retry`), with their settings `Breaker`, `Backoff` and `RateLimiter`.
- **`labkit.transactionlog`**: an append-only, tab-separated transaction log.
  `FileTransactionLogger` writes `Event`s from a background thread and replays them
  with `read_events()`.
- **`labkit.kvstore_api`** and **`labkit.kvstore_server`**: a versioned key-value
  store served over HTTP. It is backed by the transaction log and uses optimistic
  concurrency: an update is accepted only when it names the stored version.
- **`labkit.exercises`**: builds per-student exercise files from an `exercise.yaml`
  and Jinja2 templates. It picks one input per student by taking the FNV-1a hash of
  the student id.
- **`labkit.labtools`**: helpers for driving a lab service over HTTP (`request_api`)
  and for running external commands (`run_command`).

## Installation

```
pip install .
```

To install it with the test dependencies:

```
pip install ".[test]"
```

## Resilience patterns

A wrapped call fails by raising an exception.

```python
import threading

from labkit.resilient import (
    Backoff, Breaker, RateLimiter,
    with_circuit_breaker, with_rate_limiter, with_retry, with_timeout_retry,
)

def flaky():
    ...  # raises on failure

guarded = with_circuit_breaker(flaky, Breaker(failure_threshold=3, close_interval=1.0))
retrying = with_retry(flaky, Backoff(base=0.25, cap=5.0, jitter=3, num_trials=4))

stop = threading.Event()
limited = with_rate_limiter(flaky, stop, RateLimiter(capacity=4, fill=1, period=0.25))

bounded = with_timeout_retry(flaky, Backoff(base=0.01, cap=10.0, jitter=1, num_trials=10))
bounded(timeout=1.0)  # raises TimeoutError if the retries do not finish in time
```

- Once the breaker has opened, the wrapped call raises `ServiceUnavailable`. The
  breaker closes again when `close_interval` seconds have passed since the last
  attempt.
- `with_debounce_first(f, interval)` runs `f` on the first call. Any further call
  that comes within `interval` seconds of the previous one repeats the last outcome
  and does not run `f` again.
- `with_load_shedding(f, threshold)` and the rate limiter raise `TooManyRequests`
  when they reject a call. The rate limiter refills its bucket in the background
  until `stop` is set.
- `with_retry` runs `f` at most `num_trials` times and raises the last failure.
- `with_timeout(f)` returns a callable that takes a `timeout` in seconds.

## Transaction log

```python
import threading
from labkit.transactionlog import FileTransactionLogger

stop = threading.Event()
with FileTransactionLogger("/tmp/translog.log") as logger:
    logger.run(stop)
    logger.write("a", "1")
```

Each record is written as `sequence<TAB>type<TAB>value`. If a record is malformed
or the sequence numbers are out of order, `read_events()` raises
`TransactionLogError`. Errors that occur while writing are put on the queue
returned by `errors()`.

## Key-value store

Start the server:

```
labkit-kvstore
```

By default it listens on `:8081` and keeps its transaction log in `translog.log`
in the system temporary directory. Use `--listen` and `--log-file` to change
these. On start it replays the log. It runs until it receives SIGINT or SIGTERM.

The endpoints are:

- `/api/get?id=KEY`: GET only. Returns `{"value": ..., "version": ...}`. An unknown
  key gives an empty value at version 0.
- `/api/put`: takes a body `{"key": ..., "value": ..., "version": ...}`. A new key
  starts at version 1. If the value is unchanged, the request succeeds and nothing
  is stored. Otherwise the version must match the stored one, or the server
  answers with status 428.
- `/api/list`: returns every key, value and version.
- `/api/transaction`: takes a JSON array of key-value pairs. Either all of them are
  applied, or, on any version mismatch, none of them and the server answers 428.
- `/api/reset`: removes all keys.

The same operations are available in Python on `labkit.kvstore_server.Server`. A
version conflict there raises `VersionMismatch`.

## Exercise generation

Run this in a directory that holds an `exercise.yaml` and the Jinja2 templates
`.README.md`, `.exercise_test.go` and, optionally, `.exercise.go`:

```
labkit-exercises --student-id ABC123 generate
```

It renders them to `README.md`, `exercise_test.go` and `exercise.go`, using the
input from `exercise.yaml` that belongs to the student. Add `--verbose` for more
logging.

If `--student-id` is not given, the id comes from the `STUDENT_ID` environment
variable. If that is not set either, it is read from a `STUDENT_ID` file, searched
upwards from the current directory. Ids are converted to upper case. An id still
set to `PLEASE SET STUDENT ID` is rejected.

## What it does not do

- The `check` command of `labkit-exercises` only prints `Would check stuff`. It does
  not check any solution.
- `labkit.kvstore_api.Client` is an abstract interface only. The package has no
  HTTP client for the key-value store. Use any HTTP tool, or `labtools.request_api`
  with `EXTERNAL_PORT=8081` set, since its default port is 8080.

## Running the tests

```
pytest
```