# labkit

Building blocks for experimenting with distributed systems in plain Python,
with no dependencies outside the standard library.

- **`labkit.labgob`** – a serializer. `LabEncoder(stream).encode(value)`
  writes one value per line; `LabDecoder(stream).decode(template)` reads
  the next one back. Dataclasses and enums are rebuilt from the names they
  were registered under (`register`, `register_name`; unregistered types
  are registered on first encode). Two mistakes are reported and counted:
  dataclass fields whose names start with an underscore, and decoding with
  a template whose fields are not at their defaults. `error_count()`
  returns how many have been reported. Bad input raises `LabgobError`.
- **`labkit.labrpc`** – an in-process simulated network. A `Network` holds
  client ends (`make_end`), servers (`add_server`, `delete_server`) and the
  links between them (`connect`, `enable`). `reliable(False)` makes it drop
  and delay messages; `long_delays` and `long_reordering` add longer
  delays. It counts RPCs and bytes (`get_count`, `get_total_count`,
  `get_total_bytes`). A `Server` groups `Service` objects; a service is
  named after its object's class and exposes the object's public
  one-argument methods, so `end.call("JunkServer.handler2", 111)` calls
  `handler2(111)` on a `JunkServer`. `ClientEnd.call` returns the reply or
  raises `CallFailed` when the request or reply was lost or the server is
  gone; `cleanup()` makes every later call fail.
- **`labkit.mr`** – a small MapReduce framework: a `Coordinator` that hands
  out map tasks, then reduce tasks, over a UNIX-domain socket and re-issues
  tasks that fail or run longer than ten seconds; a worker (`run_worker`)
  that runs them; and a sequential runner (`labkit.mr.sequential.run`).
- **`labkit.mrapps`** – MapReduce applications: word count (`wc`), an
  inverted index (`indexer`), and test applications that crash or stall
  (`crash`), never crash (`nocrash`), stall on some keys (`early_exit`),
  count map runs (`jobcount`) or measure parallelism (`mtiming`,
  `rtiming`).
- **`labkit.kvraft`** – parts of a replicated key/value service: the
  `Clerk` client (`get`, `put`, `append`), which retries on lost messages,
  timeouts and wrong leaders by moving to the next server; the request and
  reply records and the `Err` codes; and `KVStateMachine`.
- **`labkit.models.kv`** – a key/value model for linearizability checking:
  `partition`, `init_state`, `step` and `describe_operation`, with the
  `KvInput`, `KvOutput` and `Operation` records.
- **`labkit.kvdemo`** – a tiny thread-safe key/value store (`KV`) served
  over XML-RPC on TCP (`serve`, `get`, `put`).

## Installing

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Running MapReduce

Every MapReduce application provides `mapf(filename, contents)` and
`reducef(key, values)`. Commands choose an application by name, such as
`wc` or `indexer`; a path such as `../mrapps/wc.so` names the same
application as its stem (`labkit.mr.apps.load_plugin`).

Sequential run, writing one `key value` line per key to `mr-out-0`:

```
labkit-mrsequential wc pg-*.txt
```

Distributed run: start a coordinator with the input files, then one or
more workers with the application name, all in the same directory. The
coordinator uses ten reduce tasks and exits once every task has completed.
Intermediate files are named `mr-tmp-<map>-<reduce>` and reduce output goes
to `mr-out-<n>`.

```
labkit-mrcoordinator pg-*.txt
labkit-mrworker wc
labkit-mrworker wc
```

The coordinator and workers talk over a UNIX-domain socket named
`/var/tmp/824-mr-<uid>`. A worker stops when the coordinator no longer
answers.

The applications can also be used directly:

```python
from labkit.mrapps import wc

pairs = wc.mapf("doc.txt", "a b a")
wc.reducef("a", ["1", "1"])   # "2"
```

## The key/value demo

`labkit-kvdemo` starts the small key/value server (port 1234 unless
`--port` is given), stores `subject` through it, reads it back and prints
both steps:

```
labkit-kvdemo
```

## What is not included

The package has no key/value server for `Clerk` to talk to and no
consensus layer: `labkit.kvraft` provides only the client, the messages
and the state machine. `labkit.models.kv` provides a model but no checker
that searches a history for a linearizable order.