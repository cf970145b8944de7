"""Topology nodes, sources and the builder that wires them together."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping, Sequence, Union

if TYPE_CHECKING:
    from streamline.processor import Processor


class Source(ABC):
    """A stream source that messages are consumed from."""

    @abstractmethod
    def consume(self) -> Any:
        """Return the next message from the source."""

    @abstractmethod
    def commit(self, metadata: Any) -> None:
        """Mark consumed messages described by ``metadata`` as processed."""

    @abstractmethod
    def close(self) -> None:
        """Close the source."""


@dataclass(eq=False)
class SourceNode:
    """A node sitting between a source and the rest of the node tree.

    Source nodes carry no processor, so ``processor`` is always None.
    """

    name: str = ""
    children: list[Node] = field(default_factory=list, repr=False)
    processor: None = field(default=None, init=False, repr=False)

    def add_child(self, node: Node) -> None:
        """Append ``node`` to the children of this node."""
        self.children.append(node)


@dataclass(eq=False)
class ProcessorNode:
    """A topology node wrapping a processor."""

    name: str = ""
    processor: Processor | None = None
    children: list[Node] = field(default_factory=list, repr=False)

    def add_child(self, node: Node) -> None:
        """Append ``node`` to the children of this node."""
        self.children.append(node)


Node = Union[SourceNode, ProcessorNode]

Inspection = Callable[[Mapping[Source, Node], Sequence[Node]], None]


@dataclass
class Topology:
    """The wired-up streams topology."""

    sources: dict[Source, Node] = field(default_factory=dict)
    processors: list[Node] = field(default_factory=list)


class TopologyBuilder:
    """Collects sources and processors and builds a Topology.

    Inspections are callables taking the sources mapping and the processor
    nodes; each raises an exception when the topology fails its check.
    """

    def __init__(self, inspections: Iterable[Inspection] = ()) -> None:
        self._inspections = list(inspections)
        self._sources: dict[Source, Node] = {}
        self._processors: list[Node] = []

    def add_source(self, name: str, source: Source) -> SourceNode:
        """Register ``source`` under a new source node and return the node."""
        node = SourceNode(name)
        self._sources[source] = node
        return node

    def add_processor(
        self, name: str, processor: Processor, parents: Iterable[Node]
    ) -> ProcessorNode:
        """Add a processor node as a child of every parent and return it."""
        node = ProcessorNode(name, processor)
        for parent in parents:
            parent.add_child(node)
        self._processors.append(node)
        return node

    def build(self) -> tuple[Topology, list[Exception]]:
        """Build the topology, returning it with the errors of failed inspections."""
        errors: list[Exception] = []
        for inspection in self._inspections:
            try:
                inspection(self._sources, self._processors)
            except Exception as exc:  # noqa: BLE001 - collected for the caller
                errors.append(exc)
        return Topology(self._sources, self._processors), errors


def _contains(node: Node, nodes: Iterable[Node]) -> bool:
    return any(candidate is node for candidate in nodes)


def _index_of(node: Node, nodes: Sequence[Node]) -> int:
    return next((i for i, candidate in enumerate(nodes) if candidate is node), -1)


def nodes_connected(roots: Sequence[Node]) -> bool:
    """Tell whether all the given root nodes lead into one connected tree."""
    if len(roots) <= 1:
        return True

    seen: list[Node] = []
    visit: list[Node] = list(roots)
    connections = 0

    while visit:
        node = visit.pop(0)
        seen.append(node)
        for child in node.children:
            if _contains(child, visit) or _contains(child, seen):
                connections += 1
                continue
            visit.append(child)

    return connections == len(roots) - 1


def flatten_node_tree(roots: Mapping[Source, Node]) -> list[Node]:
    """Return the processor nodes reachable from the roots, parents before children."""
    nodes: list[Node] = []
    visit: list[Node] = list(roots.values())

    while visit:
        node = visit.pop(0)
        if node.processor is not None:
            nodes.append(node)
        for child in node.children:
            if _contains(child, visit) or _contains(child, nodes):
                continue
            visit.append(child)

    # In asymmetric trees a child can end up ahead of its parent; move it back.
    i = 0
    while i < len(nodes):
        node = nodes[i]
        for child in node.children:
            pos = _index_of(child, nodes)
            if 0 <= pos < i:
                nodes[pos], nodes[i] = nodes[i], nodes[pos]
                i = pos
        i += 1

    return nodes