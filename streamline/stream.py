"""Fluent builder API for assembling stream topologies."""

from __future__ import annotations

from typing import Iterable

from streamline.processor import (
    BranchProcessor,
    FanOutProcessor,
    FilterProcessor,
    FlatMapper,
    FlatMapProcessor,
    Mapper,
    MapProcessor,
    MergeProcessor,
    Predicate,
    PrintProcessor,
    Processor,
)
from streamline.topology import (
    Inspection,
    Node,
    Source,
    Topology,
    TopologyBuilder,
)


class StreamBuilder:
    """Entry point for building a topology out of streams."""

    def __init__(self, inspections: Iterable[Inspection] = ()) -> None:
        self._topology = TopologyBuilder(inspections)

    def source(self, name: str, source: Source) -> Stream:
        """Add a source and return the stream that flows out of it."""
        node = self._topology.add_source(name, source)
        return Stream(self._topology, [node])

    def build(self) -> tuple[Topology, list[Exception]]:
        """Build the topology, returning it with any inspection errors."""
        return self._topology.build()


class Stream:
    """A stream of messages flowing out of one or more parent nodes."""

    def __init__(self, topology: TopologyBuilder, parents: Iterable[Node]) -> None:
        self._topology = topology
        self.parents: list[Node] = list(parents)

    def _attach(self, name: str, processor: Processor, parents: Iterable[Node]) -> Node:
        return self._topology.add_processor(name, processor, parents)

    def filter(self, name: str, predicate: Predicate) -> Stream:
        """Keep only the messages accepted by ``predicate``."""
        return self.process(name, FilterProcessor(predicate))

    def branch(self, name: str, *args: Predicate) -> list[Stream]:
        """Split the stream into one stream per predicate, in order."""
        node = self._attach(name, BranchProcessor(args), self.parents)
        return [Stream(self._topology, [node]) for _ in args]

    def fan_out(self, name: str, number: int) -> list[Stream]:
        """Copy every message into ``number`` streams."""
        node = self._attach(name, FanOutProcessor(number), self.parents)
        return [Stream(self._topology, [node]) for _ in range(number)]

    def map(self, name: str, mapper: Mapper) -> Stream:
        """Transform every message with ``mapper``."""
        return self.process(name, MapProcessor(mapper))

    def flat_map(self, name: str, mapper: FlatMapper) -> Stream:
        """Transform every message into zero or more messages."""
        return self.process(name, FlatMapProcessor(mapper))

    def merge(self, name: str, *args: Stream) -> Stream:
        """Merge the given streams into this one."""
        parents = [*self.parents, *(parent for stream in args for parent in stream.parents)]
        node = self._attach(name, MergeProcessor(), parents)
        return Stream(self._topology, [node])

    def print(self, name: str) -> Stream:
        """Print every message passing through the stream."""
        return self.process(name, PrintProcessor())

    def process(self, name: str, processor: Processor) -> Stream:
        """Run a custom processor on the stream."""
        node = self._attach(name, processor, self.parents)
        return Stream(self._topology, [node])