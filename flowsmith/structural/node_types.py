# flowsmith/structural/node_types.py
"""Flag nodes whose type is not in a known-type set, with near-miss suggestions."""

from typing import Iterable, List, Mapping, Set, Union

from flowsmith.model.results import NodeTypeError
from flowsmith.model.workflow import Node

MAX_SUGGESTIONS = 3


def _short_name(node_type: str) -> str:
    """'n8n-nodes-base.httpRequest' -> 'httprequest'."""
    return node_type.rsplit(".", 1)[-1].lower()


def levenshtein(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        cur = [i]
        for j, cb in enumerate(b, 1):
            cur.append(min(
                prev[j] + 1,
                cur[j - 1] + 1,
                prev[j - 1] + (ca != cb),
            ))
        prev = cur
    return prev[-1]


def suggest_types(node_type: str, known_types: Iterable[str], limit: int = MAX_SUGGESTIONS) -> List[str]:
    target = _short_name(node_type)
    suggestions: List[str] = []
    for candidate in sorted(known_types):
        if len(suggestions) >= limit:
            break
        short = _short_name(candidate)
        if not target or not short:
            continue
        if target in short or short in target:
            suggestions.append(candidate)
            continue
        threshold = max(2, int(0.2 * max(len(target), len(short))))
        if levenshtein(target, short) <= threshold:
            suggestions.append(candidate)
    return suggestions


NodeLike = Union[Node, Mapping[str, str]]


def validate_node_types(nodes: Iterable[NodeLike], known_types: Set[str]) -> List[NodeTypeError]:
    """
    Return one error per node whose type is missing from ``known_types``.

    ``nodes`` may be ``Node`` objects or plain ``{"name", "type"}`` mappings.
    """
    errors: List[NodeTypeError] = []
    for n in nodes:
        if isinstance(n, Node):
            name, node_type = n.name, n.type
        else:
            name, node_type = n.get("name", ""), n.get("type", "")
        if node_type in known_types:
            continue
        suggestions = suggest_types(node_type, known_types)
        message = f'Unknown node type "{node_type}" on node "{name}"'
        if suggestions:
            message += f" - did you mean: {', '.join(suggestions)}?"
        errors.append(NodeTypeError(
            node_type=node_type,
            node_name=name,
            message=message,
            suggestions=suggestions,
        ))
    return errors
