"""Tests for headercore.graph.builder and the graph schema."""

from __future__ import annotations

import pytest

from headercore.contracts.types import (
    ArtifactKind,
    ConditionCode,
    ConfidenceTier,
    NodeStatus,
)
from headercore.graph.builder import GraphBuilder, is_qualified
from headercore.graph.schema import (
    DependencyEdge,
    DependencyGraph,
    EdgeType,
    normalize_identity,
)
from headercore.header.schema import HeaderRecord


def _doc(path, confidence=None, dependencies=(), inputs=None, outputs=None):
    return HeaderRecord(
        artifact_path=path,
        kind=ArtifactKind.DOCUMENT,
        confidence=confidence,
        dependencies=list(dependencies),
        inputs=inputs,
        outputs=outputs,
    )


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


class TestDependencyGraph:
    def test_normalize_identity(self):
        assert normalize_identity("./docs//a.md") == "docs/a.md"
        assert normalize_identity("docs\\guide\\..\\a.md") == "docs/a.md"

    def test_duplicate_node_rejected(self):
        graph = DependencyGraph()
        graph.add_node(_doc("a.md"))
        with pytest.raises(ValueError):
            graph.add_node(_doc("./a.md"))

    def test_edge_ends_must_exist(self):
        graph = DependencyGraph()
        graph.add_node(_doc("a.md"))
        with pytest.raises(IndexError):
            graph.add_edge(DependencyEdge(0, 3, EdgeType.DEPENDS_ON, "x"))

    def test_parallel_edges_kept_once_in_adjacency(self):
        graph = DependencyGraph()
        a = graph.add_node(_doc("a.md"))
        b = graph.add_node(_doc("b.md"))
        graph.add_edge(DependencyEdge(b, a, EdgeType.DEPENDS_ON, "a.md"))
        graph.add_edge(DependencyEdge(b, a, EdgeType.CONSUMES, "out"))
        assert graph.producers_of(b) == [a]
        assert graph.consumers_of(a) == [b]
        assert len(graph.edges) == 2

    def test_to_dict(self):
        graph = DependencyGraph()
        graph.add_node(_doc("a.md"))
        graph.add_node(_doc("b.md"))
        graph.add_edge(DependencyEdge(1, 0, EdgeType.DEPENDS_ON, "a.md"))
        assert graph.to_dict() == {
            "nodes": [
                {"index": 0, "identity": "a.md", "kind": "document"},
                {"index": 1, "identity": "b.md", "kind": "document"},
            ],
            "edges": [{"consumer": 1, "producer": 0, "type": "depends_on", "name": "a.md"}],
        }


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class TestGraphBuilder:
    def test_unresolved_input_lowers_one_tier(self):
        records = [_doc("docs/b.md", ConfidenceTier.HIGH, inputs=["docA-output"], outputs=[])]
        report = GraphBuilder().build_report(records)

        assert ConditionCode.UNRESOLVED_DEPENDENCY in report.conditions
        assert [(u.artifact, u.reference, u.via) for u in report.unresolved] == [
            ("docs/b.md", "docA-output", "input")
        ]
        node = report.node("docs/b.md")
        assert node.status == NodeStatus.DEGRADED
        assert node.declared_score == 80
        assert node.derived_score == 79
        assert node.derived_tier == ConfidenceTier.MEDIUM

    def test_input_resolves_to_producer_output(self):
        records = [
            _doc("docs/a.md", 85, outputs=["docA-output"]),
            _doc("docs/b.md", ConfidenceTier.HIGH, inputs=["docA-output"]),
        ]
        graph, unresolved = GraphBuilder().build(records)
        assert unresolved == []
        assert [(e.consumer, e.producer, e.type) for e in graph.edges] == [
            (1, 0, EdgeType.CONSUMES)
        ]

    def test_qualified_inputs_are_external(self):
        assert is_qualified("env:HOME")
        assert is_qualified("param:bedTemp")
        assert not is_qualified("docA-output")
        records = [_doc("jobs/a.gcode", inputs=["param:bedTemp", "env:HOME"])]
        _, unresolved = GraphBuilder().build(records)
        assert unresolved == []

    def test_own_output_does_not_satisfy_input(self):
        records = [_doc("a.md", inputs=["loop"], outputs=["loop"])]
        _, unresolved = GraphBuilder().build(records)
        assert [u.reference for u in unresolved] == ["loop"]

    def test_dependency_paths_are_normalized(self):
        records = [_doc("docs/a.md"), _doc("docs/b.md", dependencies=["./docs/../docs/a.md"])]
        graph, unresolved = GraphBuilder().build(records)
        assert unresolved == []
        assert graph.edges[0].type == EdgeType.DEPENDS_ON
        assert graph.edges[0].name == "./docs/../docs/a.md"

    def test_missing_dependency_is_unresolved(self):
        _, unresolved = GraphBuilder().build([_doc("a.md", dependencies=["gone.md"])])
        assert [(u.reference, u.via) for u in unresolved] == [("gone.md", "dependency")]

    def test_duplicate_identity_keeps_first(self, caplog):
        first = _doc("a.md", 90)
        second = _doc("./a.md", 10)
        graph, _ = GraphBuilder().build([first, second])
        assert len(graph.nodes) == 1
        assert graph.nodes[0].record is first
        assert "Duplicate artifact identity" in caplog.text

    def test_self_dependency_is_a_cycle(self):
        report = GraphBuilder().build_report([_doc("a.md", 90, ["a.md"])])
        assert report.cycles == [["a.md"]]
        assert report.node("a.md").status == NodeStatus.CYCLIC

    def test_empty_scope(self):
        report = GraphBuilder().build_report([])
        assert report.nodes == []
        assert report.conditions == []
