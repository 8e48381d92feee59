# flowsmith/expressions/patterns.py
"""Regex families shared by the rule engine, the fixer and the expression analyzer."""

import re

# $json.field: the implicit "current item" accessor, bound to whatever is wired upstream
IMPLICIT_JSON_RE = re.compile(r"(?<!\.)\$json\.")
IMPLICIT_JSON_TEMPLATE_RE = re.compile(r"\{\{\s*\$json\.")

# $('node name'): explicit reference to a named node
EXPLICIT_REF_RE = re.compile(r"""\$\(['"]([^'"]+)['"]\)""")
EXPLICIT_CALL_RE = re.compile(r"""\$\(['"]""")

# $input.item: execution-context accessor
INPUT_ACCESSOR_RE = re.compile(r"\$input\.")

# $node["name"] / $node.name: legacy accessor
DEPRECATED_NODE_RE = re.compile(r"\$node[.\[]")

# .json.a.b without ?.
DEEP_ACCESS_RE = re.compile(r"\.json\.[a-zA-Z_]+\.[a-zA-Z_]+")
OPTIONAL_CHAIN_RE = re.compile(r"\?\.")

# {{ ... }} template markers, non-greedy
TEMPLATE_RE = re.compile(r"\{\{.*?\}\}", re.DOTALL)
EXPRESSION_PREFIX = "={{"


def explicit_reference(node_name: str) -> str:
    """Build the explicit accessor prefix for ``node_name``: $('node_name').item.json."""
    return f"$('{node_name}').item.json."
