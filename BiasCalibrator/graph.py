"""
graph.py

Co-occurrence graph of taxa and its connected components.

Bias ratios are only identifiable between taxa joined by a path of
co-occurrences, so the components of this graph decide which ratios
can be estimated.
"""

# Standard library imports
import logging
from itertools import combinations
from typing import Dict, Hashable, List, Union

# Third-party imports
import networkx as nx
import pandas as pd

# Local package imports
from .matrix import ErrorMatrix


def _canonical(taxa) -> List[Hashable]:
    return sorted(taxa, key=lambda t: (str(t), repr(t)))


def build_cooccurrence_graph(data: Union[ErrorMatrix, pd.DataFrame]) -> nx.Graph:
    """
    Build the weighted co-occurrence graph of taxa.

    Parameters
    ----------
    data : ErrorMatrix or pd.DataFrame
        Error matrix, or a boolean presence table (samples x taxa).

    Returns
    -------
    nx.Graph
        Nodes are the taxa present in at least one sample. An edge joins two
        taxa present together in some sample; its ``weight`` is the number of
        such samples.

    Notes
    -----
    - Single-taxon samples still add their taxon as a node.
    - Cost is O(samples x taxa^2), fine for tens of taxa.
    """
    presence = data.presence if isinstance(data, ErrorMatrix) else data.astype(bool)

    graph = nx.Graph()
    for _, row in presence.iterrows():
        present = [taxon for taxon, flag in row.items() if flag]
        graph.add_nodes_from(present)
        for u, v in combinations(present, 2):
            if graph.has_edge(u, v):
                graph[u][v]["weight"] += 1
            else:
                graph.add_edge(u, v, weight=1)

    logging.debug(
        f"Co-occurrence graph: {graph.number_of_nodes()} taxa, "
        f"{graph.number_of_edges()} edges."
    )
    return graph


def assign_components(graph: nx.Graph) -> Dict[Hashable, int]:
    """
    Label the connected components of the co-occurrence graph.

    Component ids start at 1 and follow the canonical (sorted) order of the
    first taxon of each component, so labels are reproducible. Only edge
    existence matters; weights are ignored.

    Returns
    -------
    dict
        Taxon -> component id, for every node of the graph.
    """
    components = [_canonical(c) for c in nx.connected_components(graph)]
    components.sort(key=lambda members: (str(members[0]), repr(members[0])))

    assignment = {}
    for cid, members in enumerate(components, start=1):
        for taxon in members:
            assignment[taxon] = cid
    return assignment


def component_members(assignment: Dict[Hashable, int]) -> Dict[int, List[Hashable]]:
    """Invert a component assignment to component id -> sorted taxa."""
    members: Dict[int, List[Hashable]] = {}
    for taxon, cid in assignment.items():
        members.setdefault(cid, []).append(taxon)
    return {cid: _canonical(members[cid]) for cid in sorted(members)}


def graph_edges(graph: nx.Graph) -> pd.DataFrame:
    """
    Edge table of the co-occurrence graph, for export and display.

    Returns
    -------
    pd.DataFrame
        Columns ``taxon_x``, ``taxon_y``, ``weight``, one row per edge with
        ``taxon_x`` before ``taxon_y`` in canonical order.
    """
    rows = []
    for u, v, weight in graph.edges(data="weight"):
        x, y = _canonical([u, v])
        rows.append({"taxon_x": x, "taxon_y": y, "weight": weight})
    edges = pd.DataFrame(rows, columns=["taxon_x", "taxon_y", "weight"])
    if edges.empty:
        return edges
    order = sorted(range(len(edges)), key=lambda i: (str(edges.taxon_x[i]), str(edges.taxon_y[i])))
    return edges.iloc[order].reset_index(drop=True)
