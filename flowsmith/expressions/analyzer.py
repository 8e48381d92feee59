# flowsmith/expressions/analyzer.py
"""
Pattern-based checks over the {{ ... }} expressions embedded in node parameters.

There is no parser here: expressions are found with regexes and checked by
counting and matching. Brace characters inside string literals of an
expression (``{{ "}}" }}``) are therefore not handled; such expressions can be
cut short or reported as unbalanced.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Set, Tuple

from flowsmith.expressions.patterns import (
    DEEP_ACCESS_RE,
    DEPRECATED_NODE_RE,
    EXPLICIT_CALL_RE,
    EXPLICIT_REF_RE,
    EXPRESSION_PREFIX,
    IMPLICIT_JSON_RE,
    INPUT_ACCESSOR_RE,
    OPTIONAL_CHAIN_RE,
    TEMPLATE_RE,
)
from flowsmith.model.results import ExpressionIssue
from flowsmith.model.workflow import Workflow


@dataclass(frozen=True)
class Expression:
    node: str
    path: str
    raw: str


def _child_path(base: str, key: str) -> str:
    return f"{base}.{key}" if base else key


def extract_expressions(params: Any, base_path: str = "") -> Iterator[Tuple[str, str]]:
    """Yield (path, raw expression) for every expression in a parameter value."""
    if isinstance(params, str):
        if params.startswith(EXPRESSION_PREFIX):
            # a whole-string expression counts once, inner markers included
            yield base_path, params
        else:
            for m in TEMPLATE_RE.finditer(params):
                yield base_path, m.group(0)
    elif isinstance(params, dict):
        for key, value in params.items():
            yield from extract_expressions(value, _child_path(base_path, str(key)))
    elif isinstance(params, list):
        for i, value in enumerate(params):
            yield from extract_expressions(value, f"{base_path}[{i}]")


def workflow_expressions(workflow: Workflow) -> List[Expression]:
    out: List[Expression] = []
    for node in workflow.nodes:
        for path, raw in extract_expressions(node.parameters):
            out.append(Expression(node=node.name, path=path, raw=raw))
    return out


def strip_delimiters(raw: str) -> str:
    body = raw[1:] if raw.startswith("=") else raw
    body = body.strip()
    if body.startswith("{{"):
        body = body[2:]
    if body.endswith("}}"):
        body = body[:-2]
    return body.strip()


def check_expression(expr: Expression, node_names: Set[str]) -> List[ExpressionIssue]:
    issues: List[ExpressionIssue] = []
    body = strip_delimiters(expr.raw)

    def issue(kind: str, severity: str, message: str, suggestion: Optional[str] = None) -> None:
        issues.append(ExpressionIssue(
            node=expr.node,
            parameter=expr.path,
            expression=expr.raw,
            kind=kind,
            issue=message,
            severity=severity,
            suggestion=suggestion,
        ))

    if IMPLICIT_JSON_RE.search(body) and not EXPLICIT_CALL_RE.search(body):
        issue(
            "implicit_json", "warning",
            "Uses $json without naming the source node",
            "Use $('node_name').item.json.field instead of $json.field",
        )

    if INPUT_ACCESSOR_RE.search(body):
        issue("input_reference", "info", "Uses $input; ensure this is intentional")

    for m in EXPLICIT_REF_RE.finditer(body):
        ref = m.group(1)
        if ref not in node_names:
            issue("unknown_node", "error", f"Referenced node does not exist: {ref}")

    if "{{" in expr.raw and "}}" not in expr.raw:
        issue("missing_close", "error", "Missing closing }}")

    if body.count("(") != body.count(")"):
        issue("unbalanced_parens", "error", "Unbalanced parentheses")

    if body.count("[") != body.count("]"):
        issue("unbalanced_brackets", "error", "Unbalanced brackets")

    if DEPRECATED_NODE_RE.search(body):
        issue(
            "deprecated_node_accessor", "warning",
            "Uses deprecated $node syntax",
            "Use $('node_name') instead of $node",
        )

    if DEEP_ACCESS_RE.search(body) and not OPTIONAL_CHAIN_RE.search(body):
        issue(
            "deep_access", "info",
            "Deep property access without optional chaining",
            "Use ?. for nested properties that may be missing",
        )

    return issues


def validate_expressions(workflow: Workflow) -> List[ExpressionIssue]:
    names = set(workflow.node_names())
    issues: List[ExpressionIssue] = []
    for expr in workflow_expressions(workflow):
        issues.extend(check_expression(expr, names))
    return issues
