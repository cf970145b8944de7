"""Stream processors and the built-in transformations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, Sequence

Mapper = Callable[[Any], Any]
FlatMapper = Callable[[Any], Iterable[Any]]
Predicate = Callable[[Any], bool]


class Processor(ABC):
    """A stream processor that receives messages and forwards them down its pipe."""

    pipe: Any = None

    def with_pipe(self, pipe: Any) -> None:
        """Attach the pipe used to pass messages on."""
        self.pipe = pipe

    @abstractmethod
    def process(self, msg: Any) -> None:
        """Process a single message."""

    def close(self) -> None:
        """Detach the pipe; subclasses holding resources release them too."""
        self.pipe = None


class Committer(Processor):
    """A processor that commits batches of work."""

    @abstractmethod
    def commit(self, ctx: Any) -> None:
        """Commit the processor's current batch."""


class BranchProcessor(Processor):
    """Forwards a message to every child whose predicate accepts it."""

    def __init__(self, predicates: Sequence[Predicate]) -> None:
        self.predicates = list(predicates)

    def process(self, msg: Any) -> None:
        for index, predicate in enumerate(self.predicates):
            if predicate(msg):
                self.pipe.forward_to_child(msg, index)


class FanOutProcessor(Processor):
    """Passes each message to a fixed number of children."""

    def __init__(self, streams: int) -> None:
        self.streams = streams

    def process(self, msg: Any) -> None:
        for index in range(self.streams):
            self.pipe.forward_to_child(msg, index)


class FilterProcessor(Processor):
    """Forwards messages that satisfy a predicate and marks the rest."""

    def __init__(self, predicate: Predicate | None) -> None:
        self.predicate = predicate

    def process(self, msg: Any) -> None:
        if self.predicate(msg):
            self.pipe.forward(msg)
        else:
            self.pipe.mark(msg)


class FlatMapProcessor(Processor):
    """Maps each message to zero or more messages and forwards them all."""

    def __init__(self, mapper: FlatMapper | None) -> None:
        self.mapper = mapper

    def process(self, msg: Any) -> None:
        for output in self.mapper(msg):
            self.pipe.forward(output)


class MapProcessor(Processor):
    """Maps each message to a new message and forwards it."""

    def __init__(self, mapper: Mapper | None) -> None:
        self.mapper = mapper

    def process(self, msg: Any) -> None:
        self.pipe.forward(self.mapper(msg))


class MergeProcessor(Processor):
    """Forwards messages from several parent streams into one."""

    def process(self, msg: Any) -> None:
        self.pipe.forward(msg)


class PrintProcessor(Processor):
    """Prints each message as ``key:value`` and forwards it."""

    def process(self, msg: Any) -> None:
        print(f"{msg.key}:{msg.value}")
        self.pipe.forward(msg)