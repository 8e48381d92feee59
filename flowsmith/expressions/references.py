# flowsmith/expressions/references.py
from __future__ import annotations

from typing import Dict, FrozenSet, List, Set

from flowsmith.expressions.analyzer import workflow_expressions
from flowsmith.expressions.patterns import EXPLICIT_REF_RE
from flowsmith.model.workflow import Workflow


def get_referenced_nodes(workflow: Workflow) -> Dict[str, List[str]]:
    """
    Node name -> names it references through $('...') calls, in first-seen order.
    Nodes without explicit references are left out.
    """
    refs: Dict[str, List[str]] = {}
    for expr in workflow_expressions(workflow):
        for m in EXPLICIT_REF_RE.finditer(expr.raw):
            seen = refs.setdefault(expr.node, [])
            if m.group(1) not in seen:
                seen.append(m.group(1))
    return refs


def check_circular_references(workflow: Workflow) -> List[List[str]]:
    """
    Cycles in the explicit-reference graph.

    Each cycle is the DFS path from the first occurrence of the repeated node
    through the repeat, e.g. ["a", "b", "a"]. Cycles over the same set of
    node names are reported once, first occurrence kept.
    """
    graph = get_referenced_nodes(workflow)
    cycles: List[List[str]] = []
    seen: Set[FrozenSet[str]] = set()

    def dfs(node: str, path: List[str]) -> None:
        for nxt in graph.get(node, []):
            if nxt in path:
                cycle = path[path.index(nxt):] + [nxt]
                key = frozenset(cycle)
                if key not in seen:
                    seen.add(key)
                    cycles.append(cycle)
                continue
            path.append(nxt)
            dfs(nxt, path)
            path.pop()

    for start in graph:
        dfs(start, [start])
    return cycles
