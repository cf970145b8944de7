# streamline

Building blocks for stream processing. You describe a topology of sources
and processors. Pumps move messages through the processor nodes. A timed
supervisor triggers commits at a fixed interval, and a SQL sink writes
messages to a database in batches.

## Installing

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Building a topology

A source subclasses `streamline.topology.Source` and implements
`consume()`, `commit(metadata)` and `close()`. You build a topology with
`streamline.stream.StreamBuilder`. Each step on a `Stream` adds a named
node and returns a new stream, so you can carry on from there:

```python
from streamline.stream import StreamBuilder

builder = StreamBuilder()

stream = builder.source("events", my_source)
stream = stream.filter("only-valid", lambda msg: msg.value is not None)
stream = stream.map("enrich", enrich)

left, right = stream.branch("split", is_left, is_right)
left.print("debug")
right.process("store", my_processor)

topology, errors = builder.build()
```

Predicates and mappers are plain callables that take a message.
`Stream` offers these operations:

- `filter(name, predicate)`: forwards the messages the predicate accepts and marks the rest on the pipe.
- `map(name, mapper)`: forwards `mapper(msg)`.
- `flat_map(name, mapper)`: forwards every message in the iterable that `mapper(msg)` returns.
- `branch(name, *predicates)`: returns one stream per predicate. A message goes to every branch whose predicate accepts it.
- `fan_out(name, number)`: returns `number` streams, and every message goes to all of them.
- `merge(name, *streams)`: joins the other streams into this one.
- `print(name)`: prints `key:value` for each message and forwards it.
- `process(name, processor)`: runs your own processor.

`build()` returns a `streamline.topology.Topology` with `sources` and
`processors`, together with a list of exceptions. The list comes from
inspections, which are callables you pass to `StreamBuilder(inspections)`
or `TopologyBuilder(inspections)`. Each one is called as
`inspection(sources, processors)`, and any exception it raises goes into
the list. No inspections run by default. `streamline.topology.nodes_connected(roots)`
tells you whether several roots lead into one connected tree, which is
useful when you write your own inspections.
`streamline.topology.flatten_node_tree(sources)` lists the processor nodes
that can be reached from the sources, with parents before their children.

## Processors

`streamline.processor.Processor` receives its pipe through `with_pipe(pipe)`.
It handles messages in `process(msg)`, and `close()` detaches the pipe.
The built-in processors call `forward(msg)`, `forward_to_child(msg, index)`
and `mark(msg)` on the pipe. A `streamline.processor.Committer` also
implements `commit(ctx)` to flush its batch. Any error a processor raises
is passed on to the caller.

## Pumps

All three pumps live in `streamline.pump`:

- `SyncPump(monitor, node, pipe)` processes each accepted message on the calling thread.
- `AsyncPump(monitor, node, pipe, error_fn)` puts messages on a queue of 1000 and processes them on a worker thread. The first processor error goes to `error_fn` and ends the worker. Call `stop()` before `close()`.
- `SourcePump(monitor, name, source, pumps, error_fn)` calls `consume()` over and over on a background thread. It skips messages that are `None` or whose `empty()` returns true, and calls `accept(msg)` on each pump. A consume or accept error goes to `error_fn` and ends the loop.

`SyncPump` and `AsyncPump` can be used as locks (`acquire`/`release`) or
in a `with` block. Holding one stops it from processing while a commit
runs. The monitor needs a `processed(name, latency, pressure)` method,
with latency in seconds. The pipe needs `reset()` and `duration()`, also
in seconds. `stop_all(source_pumps)` stops several source pumps, and
`pressure(queue)` gives how full a queue is as a percentage.

## Timed commits

`streamline.supervisor.TimedSupervisor(inner, interval, error_fn)` wraps
another supervisor object. It calls `inner.commit(None)` every `interval`
seconds. When a caller invokes `commit(caller)` by hand, the next timed
commit is skipped. `with_context`, `with_monitor` and `with_pumps` are
passed on to `inner`. Errors from timed commits go to `error_fn`.
`start()` raises `ValueError` when the interval is not positive, and
`AlreadyRunningError` when the supervisor is already running. `commit()`
and `close()` raise `NotRunningError` when it is not running. The class
also works as a context manager. `UnknownPumpError` is defined for inner
supervisors to raise.

## Running several tasks

`streamline.task.Tasks` is a list of task objects. `start(ctx)` and
`on_error(fn)` call the tasks in order, and `close()` calls them in
reverse order. `start` and `close` stop at the first error.
`streamline.task.TaskMode` names the `ASYNC` and `SYNC` modes.

## SQL sink

`streamline.sql.sink.Sink(db, batch, executor)` is a committer that works
on a DB-API connection. For each message it opens a cursor if none is
open, calls `executor(cursor, msg)`, and then calls `pipe.mark(msg)`. Once
`batch` messages have been handled it calls `pipe.commit(msg)` instead.
`commit(ctx)` commits the connection and rolls back if the commit fails.
`close()` rolls back any open work and closes the connection. If the
executor also has `begin(cursor)` and `commit(cursor)` methods, the sink
calls them when a transaction starts and just before it commits. A batch
size of zero raises `ValueError`.

## What is not included

The package has no task runner that wires a built topology to pumps. It
has no pipe or metadata store that tracks which messages have been
processed. It has no base supervisor that runs the commit sequence
across committers and sources, and no monitor or stats collector. You
supply these objects yourself, with the methods described above. The
package has no command-line interface.