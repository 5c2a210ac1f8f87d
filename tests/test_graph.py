"""Tests for the co-occurrence graph and its components."""

import numpy as np
import pandas as pd

from BiasCalibrator.graph import (
    assign_components,
    build_cooccurrence_graph,
    component_members,
    graph_edges,
)
from BiasCalibrator.matrix import ErrorMatrix


def _presence(rows, taxa):
    return pd.DataFrame(rows, columns=taxa, index=[f"S{i + 1}" for i in range(len(rows))])


class TestBuildCooccurrenceGraph:

    def test_edge_weights_count_shared_samples(self):
        presence = _presence(
            [[True, True, False], [True, True, True], [False, True, True]],
            ["A", "B", "C"],
        )
        graph = build_cooccurrence_graph(presence)

        assert graph["A"]["B"]["weight"] == 2
        assert graph["B"]["C"]["weight"] == 2
        assert graph["A"]["C"]["weight"] == 1

    def test_single_taxon_sample_registers_node(self):
        presence = _presence([[True, False], [False, True]], ["A", "B"])
        graph = build_cooccurrence_graph(presence)
        assert set(graph.nodes) == {"A", "B"}
        assert graph.number_of_edges() == 0

    def test_unobserved_taxon_has_no_node(self):
        error = ErrorMatrix(
            values=np.ones((2, 3)),
            missing=[[False, False, True], [False, False, True]],
            taxa=["A", "B", "C"],
        )
        graph = build_cooccurrence_graph(error)
        assert set(graph.nodes) == {"A", "B"}

    def test_no_self_loops(self):
        presence = _presence([[True, True]], ["A", "B"])
        graph = build_cooccurrence_graph(presence)
        assert not any(u == v for u, v in graph.edges)


class TestAssignComponents:

    def test_connected_graph_has_one_component(self):
        presence = _presence([[True, True, False], [False, True, True]], ["A", "B", "C"])
        assignment = assign_components(build_cooccurrence_graph(presence))
        assert assignment == {"A": 1, "B": 1, "C": 1}

    def test_numbering_follows_sorted_taxa(self):
        presence = _presence(
            [[True, False, False, True], [False, True, True, False]],
            ["d", "b", "c", "a"],
        )
        assignment = assign_components(build_cooccurrence_graph(presence))
        # {a, d} contains the first taxon in sorted order
        assert assignment == {"a": 1, "d": 1, "b": 2, "c": 2}

    def test_numbering_is_reproducible(self):
        presence = _presence(
            [[True, False, False], [False, True, False], [False, False, True]],
            ["C", "A", "B"],
        )
        first = assign_components(build_cooccurrence_graph(presence))
        second = assign_components(build_cooccurrence_graph(presence[["B", "C", "A"]]))
        assert first == second == {"A": 1, "B": 2, "C": 3}

    def test_component_members(self):
        members = component_members({"b": 1, "a": 1, "c": 2})
        assert members == {1: ["a", "b"], 2: ["c"]}


class TestGraphEdges:

    def test_edge_table(self):
        presence = _presence([[True, True, True], [True, True, False]], ["C", "B", "A"])
        edges = graph_edges(build_cooccurrence_graph(presence))

        assert list(edges.columns) == ["taxon_x", "taxon_y", "weight"]
        assert edges[["taxon_x", "taxon_y"]].values.tolist() == [["A", "B"], ["A", "C"], ["B", "C"]]
        assert edges["weight"].tolist() == [1, 1, 2]

    def test_empty_graph(self):
        presence = _presence([[True, False]], ["A", "B"])
        edges = graph_edges(build_cooccurrence_graph(presence))
        assert edges.empty
