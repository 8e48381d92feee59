# flowsmith/utils/graph.py
from typing import Optional, Set

import networkx as nx

from flowsmith.model.workflow import Workflow


def build_dag(workflow: Workflow) -> nx.DiGraph:
    """
    Build a name-keyed DiGraph from a workflow.

    One vertex per node, one edge per connection target. Edges whose endpoints
    are not both known nodes are skipped (a half-applied patch can leave
    dangling connection entries behind).
    """
    G = nx.DiGraph()
    for n in workflow.nodes:
        G.add_node(n.name)

    for src, _label, _slot, conn in workflow.iter_connections():
        if src in G and conn.node in G:
            G.add_edge(src, conn.node)
    return G


def connected_names(workflow: Workflow) -> Set[str]:
    """Names appearing anywhere in the connection map, as source or as target."""
    names: Set[str] = set(workflow.connections.keys())
    for _src, _label, _slot, conn in workflow.iter_connections():
        names.add(conn.node)
    return names


def find_previous_node(workflow: Workflow, node_name: str) -> Optional[str]:
    """Return the first source wired directly into ``node_name``, or None."""
    for src, _label, _slot, conn in workflow.iter_connections():
        if conn.node == node_name:
            return src
    return None

