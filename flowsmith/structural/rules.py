# flowsmith/structural/rules.py
"""
Opinionated static checks over a workflow graph.

Every rule is an independent scan producing ``ValidationWarning``s; the
workflow is valid when none of them is at "error" severity. Nothing here
mutates its input.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List

from flowsmith.expressions.patterns import IMPLICIT_JSON_RE, explicit_reference
from flowsmith.model.results import ValidationResult, ValidationWarning
from flowsmith.model.workflow import Node, Workflow
from flowsmith.structural.naming import is_snake_case, to_snake_case
from flowsmith.utils.graph import connected_names

# ---------- rule ids ----------
RULE_SNAKE_CASE = "snake_case"
RULE_EXPLICIT_REFERENCE = "explicit_reference"
RULE_HARDCODED_IDS = "no_hardcoded_ids"
RULE_HARDCODED_SECRETS = "no_hardcoded_secrets"
RULE_CODE_NODE = "code_node_usage"
RULE_AI_STRUCTURED_OUTPUT = "ai_structured_output"
RULE_IN_MEMORY_STORAGE = "in_memory_storage"
RULE_ORPHAN_NODE = "orphan_node"
RULE_NODE_EXISTS = "node_exists"
RULE_PARAMETER_PRESERVATION = "parameter_preservation"

# ---------- node type families ----------
CODE_NODE_TYPES = (
    "n8n-nodes-base.code",
    "n8n-nodes-base.function",
    "n8n-nodes-base.functionItem",
    "@n8n/n8n-nodes-langchain.code",
)

AI_AGENT_TYPES = (
    "@n8n/n8n-nodes-langchain.agent",
    "@n8n/n8n-nodes-langchain.chainLlm",
)
OUTPUT_PARSER_KEYS = ("outputParser", "hasOutputParser", "schemaType", "jsonSchemaExample", "inputSchema")
PROMPT_TYPE_DEFINE = "define"

IN_MEMORY_TYPES = (
    "@n8n/n8n-nodes-langchain.memoryBufferWindow",
    "@n8n/n8n-nodes-langchain.vectorStoreInMemory",
    "@n8n/n8n-nodes-langchain.vectorStoreInMemoryInsert",
    "@n8n/n8n-nodes-langchain.vectorStoreInMemoryLoad",
)

# matched against the unqualified part of the type name
TRIGGER_MARKERS = (
    "webhook",
    "scheduleTrigger",
    "manualTrigger",
    "emailTrigger",
    "chatTrigger",
    "formTrigger",
    "errorTrigger",
    "executeWorkflowTrigger",
    "cron",
)

# ---------- text patterns over serialized parameters ----------
_ID_PATTERNS = (
    re.compile(r"""["']\d{17,19}["']"""),  # snowflake ids (Discord, Twitter)
    re.compile(r"""["'][0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}["']""", re.I),
    re.compile(r"""["'][0-9a-f]{24}["']""", re.I),  # Mongo ObjectId
)

# applied to lowercased text; expression values (={{ ... }}) are not literals
_SECRET_PATTERNS = (
    re.compile(r"""api[_-]?key["']\s*:\s*["'](?![={])[^"']{8,}["']"""),
    re.compile(r"""secret["']\s*:\s*["'](?![={])[^"']{8,}["']"""),
    re.compile(r"""password["']\s*:\s*["'](?![={])[^"']{8,}["']"""),
    re.compile(r"""token["']\s*:\s*["'](?![={])[a-z0-9_\-.]{20,}["']"""),
)


def serialize_parameters(params: Dict[str, Any]) -> str:
    return json.dumps(params, ensure_ascii=False)


def is_trigger_type(node_type: str) -> bool:
    short = node_type.rsplit(".", 1)[-1]
    return any(marker in short for marker in TRIGGER_MARKERS)


# ---------- public API ----------

def validate_workflow(workflow: Workflow) -> ValidationResult:
    warnings: List[ValidationWarning] = []

    check_snake_case(workflow.name, None, warnings)
    for node in workflow.nodes:
        check_snake_case(node.name, node.name, warnings)
        check_explicit_reference(node, warnings)
        check_hardcoded_ids(node, warnings)
        check_hardcoded_secrets(node, warnings)
        check_code_node(node, warnings)
        check_ai_structured_output(node, warnings)
        check_in_memory_storage(node, warnings)
    check_orphans(workflow, warnings)

    return ValidationResult(
        valid=not any(w.severity == "error" for w in warnings),
        warnings=warnings,
    )


def validate_partial_update(
    workflow: Workflow,
    node_name: str,
    new_parameters: Dict[str, Any],
) -> List[ValidationWarning]:
    """Check a parameter replacement for ``node_name`` before it is sent."""
    node = workflow.find_node(node_name)
    if node is None:
        return [ValidationWarning(
            rule=RULE_NODE_EXISTS,
            severity="error",
            node=node_name,
            message=f'Node "{node_name}" not found in workflow',
        )]

    missing = [k for k in node.parameters if k not in new_parameters]
    if not missing:
        return []
    return [ValidationWarning(
        rule=RULE_PARAMETER_PRESERVATION,
        severity="error",
        node=node_name,
        message=(
            f"Update will remove parameters: {', '.join(missing)}. "
            "Include all existing parameters to preserve them."
        ),
        suggestion="Send the full parameter object, including unchanged keys",
    )]


# ---------- individual rules ----------

def check_snake_case(name: str, node_name, warnings: List[ValidationWarning]) -> None:
    if is_snake_case(name):
        return
    normalized = to_snake_case(name)
    context = "workflow" if node_name is None else f'node "{name}"'
    warnings.append(ValidationWarning(
        rule=RULE_SNAKE_CASE,
        severity="warning",
        node=node_name,
        message=f'{context} should use snake_case naming: "{name}" -> "{normalized}"',
        suggestion=normalized,
    ))


def check_explicit_reference(node: Node, warnings: List[ValidationWarning]) -> None:
    if IMPLICIT_JSON_RE.search(serialize_parameters(node.parameters)):
        warnings.append(ValidationWarning(
            rule=RULE_EXPLICIT_REFERENCE,
            severity="warning",
            node=node.name,
            message=f'Node "{node.name}" uses $json - use explicit {explicit_reference("node_name")}field instead',
            suggestion="Reference the source node by name",
        ))


def check_hardcoded_ids(node: Node, warnings: List[ValidationWarning]) -> None:
    text = serialize_parameters(node.parameters)
    if any(p.search(text) for p in _ID_PATTERNS):
        warnings.append(ValidationWarning(
            rule=RULE_HARDCODED_IDS,
            severity="info",
            node=node.name,
            message=f'Node "{node.name}" may contain hardcoded IDs - consider using config nodes or environment variables',
        ))


def check_hardcoded_secrets(node: Node, warnings: List[ValidationWarning]) -> None:
    text = serialize_parameters(node.parameters).lower()
    if any(p.search(text) for p in _SECRET_PATTERNS):
        # info only: a false positive must never block a save
        warnings.append(ValidationWarning(
            rule=RULE_HARDCODED_SECRETS,
            severity="info",
            node=node.name,
            message=f'Node "{node.name}" may contain hardcoded secrets',
            suggestion="Use credentials or {{ $env.VAR_NAME }} instead of literal values",
        ))


def check_code_node(node: Node, warnings: List[ValidationWarning]) -> None:
    if node.type in CODE_NODE_TYPES:
        warnings.append(ValidationWarning(
            rule=RULE_CODE_NODE,
            severity="info",
            node=node.name,
            message=f'Node "{node.name}" runs custom code - prefer built-in nodes where one exists',
        ))


def check_ai_structured_output(node: Node, warnings: List[ValidationWarning]) -> None:
    if node.type not in AI_AGENT_TYPES:
        return
    params = node.parameters
    if not any(k in params for k in OUTPUT_PARSER_KEYS):
        return
    if params.get("promptType") == PROMPT_TYPE_DEFINE and params.get("hasOutputParser") is True:
        return
    warnings.append(ValidationWarning(
        rule=RULE_AI_STRUCTURED_OUTPUT,
        severity="warning",
        node=node.name,
        message=f'Node "{node.name}" uses an output parser without promptType "define" and hasOutputParser true',
        suggestion='Set promptType: "define" and hasOutputParser: true',
    ))


def check_in_memory_storage(node: Node, warnings: List[ValidationWarning]) -> None:
    if node.type in IN_MEMORY_TYPES:
        warnings.append(ValidationWarning(
            rule=RULE_IN_MEMORY_STORAGE,
            severity="warning",
            node=node.name,
            message=f'Node "{node.name}" keeps its data in memory - it is lost on restart',
            suggestion="Use a persistent memory or vector store",
        ))


def check_orphans(workflow: Workflow, warnings: List[ValidationWarning]) -> None:
    connected = connected_names(workflow)
    for node in workflow.nodes:
        if node.name in connected or is_trigger_type(node.type):
            continue
        warnings.append(ValidationWarning(
            rule=RULE_ORPHAN_NODE,
            severity="warning",
            node=node.name,
            message=f'Node "{node.name}" has no connections - may be orphaned',
        ))
