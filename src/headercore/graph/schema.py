"""
Dependency graph schema: an arena of artifact nodes with index-pair edges.

Nodes are stored in a list and addressed by position; an identity index maps
normalized artifact paths to positions.  Edges point from the consumer to the
producer it depends on.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from headercore.header.schema import HeaderRecord

__all__ = [
    "EdgeType",
    "ArtifactNode",
    "DependencyEdge",
    "DependencyGraph",
    "normalize_identity",
]


def normalize_identity(path: str) -> str:
    """Posix-normalized artifact identity (``./a//b.py`` -> ``a/b.py``)."""
    text = path.strip().replace("\\", "/")
    if not text:
        return text
    return posixpath.normpath(text)


class EdgeType(Enum):
    """How a consumer came to depend on a producer."""
    DEPENDS_ON = "depends_on"  # Dependencies entry naming the producer
    CONSUMES = "consumes"      # Inputs entry matching one of the producer's Outputs


@dataclass(frozen=True)
class ArtifactNode:
    """One artifact in the arena.

    Attributes:
        index: Position in ``DependencyGraph.nodes``
        identity: Normalized artifact path
        record: The finalized header record
    """
    index: int
    identity: str
    record: HeaderRecord

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "identity": self.identity,
            "kind": self.record.kind.value,
        }


@dataclass(frozen=True)
class DependencyEdge:
    """Directed relation ``consumer -> producer`` via a declared name."""
    consumer: int
    producer: int
    type: EdgeType
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "consumer": self.consumer,
            "producer": self.producer,
            "type": self.type.value,
            "name": self.name,
        }


@dataclass
class DependencyGraph:
    """Node arena plus edge list.

    Attributes:
        nodes: Artifact nodes, indexed by position
        edges: All edges, as index pairs
        index: Identity to node position
    """
    nodes: List[ArtifactNode] = field(default_factory=list)
    edges: List[DependencyEdge] = field(default_factory=list)
    index: Dict[str, int] = field(default_factory=dict)
    _adjacency: List[List[int]] = field(default_factory=list, repr=False)

    def add_node(self, record: HeaderRecord) -> int:
        """Add a record and return its position.

        Raises:
            ValueError: If a node with the same identity already exists
        """
        identity = normalize_identity(record.artifact_path)
        if identity in self.index:
            raise ValueError(f"Artifact '{identity}' is already in the graph")
        position = len(self.nodes)
        self.nodes.append(ArtifactNode(index=position, identity=identity, record=record))
        self.index[identity] = position
        self._adjacency.append([])
        return position

    def add_edge(self, edge: DependencyEdge) -> None:
        """Add an edge; parallel edges between the same pair are kept once in adjacency.

        Raises:
            IndexError: If either end is not a node position
        """
        for end in (edge.consumer, edge.producer):
            if not 0 <= end < len(self.nodes):
                raise IndexError(f"Edge end {end} is not a node in the graph")
        self.edges.append(edge)
        if edge.producer not in self._adjacency[edge.consumer]:
            self._adjacency[edge.consumer].append(edge.producer)

    def get_node(self, identity: str) -> Optional[ArtifactNode]:
        position = self.index.get(normalize_identity(identity))
        return self.nodes[position] if position is not None else None

    def producers_of(self, position: int) -> List[int]:
        """Positions of the nodes ``position`` depends on."""
        return list(self._adjacency[position])

    def consumers_of(self, position: int) -> List[int]:
        return sorted({e.consumer for e in self.edges if e.producer == position})

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }
