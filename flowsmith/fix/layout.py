# flowsmith/fix/layout.py
"""
Canvas tidy-up: layered left-to-right layout plus parameter cleanup.

The layout follows the usual Sugiyama steps on a networkx graph:
  1) break cycles by reversing DFS back edges;
  2) assign ranks by longest path from the sources (triggers stay at rank 0,
     other sources are pulled next to their first successor);
  3) order each rank with barycenter sweeps, keeping the ordering with the
     fewest crossings between adjacent ranks;
  4) place ranks on columns and centre every column vertically.
Node positions are the top-left corners, so centres are shifted by half the
node footprint.
"""

from __future__ import annotations

from typing import Any, Dict, List, Set, Tuple

import networkx as nx

from flowsmith.model.workflow import Workflow
from flowsmith.structural.rules import is_trigger_type
from flowsmith.utils.graph import build_dag

# Canvas constants (n8n grid unit is 16px)
GRID_SIZE = 16
NODE_WIDTH = GRID_SIZE * 6       # 96, square nodes
NODE_HEIGHT = GRID_SIZE * 6      # 96
RANK_SPACING = GRID_SIZE * 8     # 128, horizontal gap between ranks
NODE_SPACING = GRID_SIZE * 6     # 96, vertical gap inside a rank
MARGIN_X = GRID_SIZE * 11        # 176
MARGIN_Y = GRID_SIZE * 15        # 240

BARYCENTER_SWEEPS = 4


def format_workflow(workflow: Workflow) -> Workflow:
    """Return a copy with recomputed positions and null-free parameters."""
    formatted = workflow.clone()
    if not formatted.nodes:
        return formatted

    positions = compute_positions(formatted)
    for node in formatted.nodes:
        if node.name in positions:
            node.position = positions[node.name]
    formatted.nodes.sort(key=lambda n: (n.position[0], n.position[1]))

    for node in formatted.nodes:
        node.parameters = clean_parameters(node.parameters)
    return formatted


def clean_parameters(obj: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys whose value is None, recursing into nested objects. Lists are kept as-is."""
    cleaned: Dict[str, Any] = {}
    for key, value in obj.items():
        if value is None:
            continue
        if isinstance(value, dict):
            cleaned[key] = clean_parameters(value)
        else:
            cleaned[key] = value
    return cleaned


# ---------- layout ----------

def compute_positions(workflow: Workflow) -> Dict[str, Tuple[int, int]]:
    """Top-left canvas position per node name."""
    G = build_dag(workflow)
    order = {name: i for i, name in enumerate(G.nodes)}

    H = _make_acyclic(G, order)
    rank = _assign_ranks(H, order, workflow)
    layers = _order_layers(H, rank, order)

    heights = {r: len(names) * NODE_HEIGHT + (len(names) - 1) * NODE_SPACING for r, names in layers.items()}
    tallest = max(heights.values())

    positions: Dict[str, Tuple[int, int]] = {}
    for r, names in layers.items():
        offset = (tallest - heights[r]) / 2
        for i, name in enumerate(names):
            cx = MARGIN_X + r * (NODE_WIDTH + RANK_SPACING) + NODE_WIDTH / 2
            cy = MARGIN_Y + offset + i * (NODE_HEIGHT + NODE_SPACING) + NODE_HEIGHT / 2
            positions[name] = (round(cx - NODE_WIDTH / 2), round(cy - NODE_HEIGHT / 2))
    return positions


def _make_acyclic(G: nx.DiGraph, order: Dict[str, int]) -> nx.DiGraph:
    """Copy of G with DFS back edges reversed and self loops dropped."""
    back_edges: Set[Tuple[str, str]] = set()
    state: Dict[str, int] = {}  # 1 = on stack, 2 = done

    for root in G.nodes:
        if root in state:
            continue
        state[root] = 1
        stack = [(root, iter(sorted(G.successors(root), key=order.get)))]
        while stack:
            node, succs = stack[-1]
            nxt = next(succs, None)
            if nxt is None:
                state[node] = 2
                stack.pop()
                continue
            if state.get(nxt) == 1:
                back_edges.add((node, nxt))
            elif nxt not in state:
                state[nxt] = 1
                stack.append((nxt, iter(sorted(G.successors(nxt), key=order.get))))

    H = nx.DiGraph()
    H.add_nodes_from(G.nodes)
    for u, v in G.edges:
        if u == v:
            continue
        if (u, v) in back_edges:
            H.add_edge(v, u)
        else:
            H.add_edge(u, v)
    return H


def _assign_ranks(H: nx.DiGraph, order: Dict[str, int], workflow: Workflow) -> Dict[str, int]:
    rank: Dict[str, int] = {}
    topo = list(nx.lexicographical_topological_sort(H, key=order.get))
    for n in topo:
        preds = list(H.predecessors(n))
        rank[n] = max(rank[p] + 1 for p in preds) if preds else 0

    # non-trigger sources sit right before their nearest successor
    types = {n.name: n.type for n in workflow.nodes}
    for n in reversed(topo):
        if H.in_degree(n) == 0 and H.out_degree(n) > 0 and not is_trigger_type(types.get(n, "")):
            rank[n] = max(0, min(rank[s] for s in H.successors(n)) - 1)
    return rank


def _order_layers(H: nx.DiGraph, rank: Dict[str, int], order: Dict[str, int]) -> Dict[int, List[str]]:
    layers: Dict[int, List[str]] = {}
    for n in sorted(H.nodes, key=order.get):
        layers.setdefault(rank[n], []).append(n)
    ranks = sorted(layers)

    best = {r: list(names) for r, names in layers.items()}
    best_crossings = _count_crossings(H, best, ranks)

    current = {r: list(names) for r, names in layers.items()}
    for sweep in range(BARYCENTER_SWEEPS):
        downward = sweep % 2 == 0
        sequence = ranks[1:] if downward else list(reversed(ranks[:-1]))
        for r in sequence:
            pos = {n: i for names in current.values() for i, n in enumerate(names)}
            neighbours = H.predecessors if downward else H.successors

            def barycenter(n: str, idx: int) -> float:
                ns = [pos[m] for m in neighbours(n)]
                return sum(ns) / len(ns) if ns else float(idx)

            current[r] = [
                n for _, _, n in sorted(
                    (barycenter(n, i), i, n) for i, n in enumerate(current[r])
                )
            ]
        crossings = _count_crossings(H, current, ranks)
        if crossings < best_crossings:
            best_crossings = crossings
            best = {r: list(names) for r, names in current.items()}
    return best


def _count_crossings(H: nx.DiGraph, layers: Dict[int, List[str]], ranks: List[int]) -> int:
    """Edge crossings between each pair of adjacent ranks."""
    pos = {n: i for names in layers.values() for i, n in enumerate(names)}
    total = 0
    for upper, lower in zip(ranks, ranks[1:]):
        upper_set, lower_set = set(layers[upper]), set(layers[lower])
        edges = [(pos[u], pos[v]) for u, v in H.edges if u in upper_set and v in lower_set]
        for i, (a1, b1) in enumerate(edges):
            for a2, b2 in edges[i + 1:]:
                if (a1 - a2) * (b1 - b2) < 0:
                    total += 1
    return total
