# flowsmith/structural/schema.py
"""
Envelope schema for workflow documents.

Only the workflow-level shape is checked (node identity fields, connection
map layout). Node parameters are free-form: their shape depends on the node
type and is not validated here.
"""

from typing import Any, Dict, List

from jsonschema import Draft7Validator

from flowsmith.model.errors import EnvelopeError
from flowsmith.model.workflow import Workflow

_TARGET = {
    "type": "object",
    "required": ["node"],
    "properties": {
        "node": {"type": "string"},
        "type": {"type": "string"},
        "index": {"type": "integer", "minimum": 0},
    },
    "additionalProperties": True,
}

WORKFLOW_ENVELOPE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["name", "nodes", "connections"],
    "properties": {
        "id": {"type": ["string", "number"]},
        "name": {"type": "string"},
        "active": {"type": "boolean"},
        "nodes": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name", "type"],
                "properties": {
                    "id": {"type": ["string", "number"]},
                    "name": {"type": "string", "minLength": 1},
                    "type": {
                        "type": "string",
                        # namespaced: "n8n-nodes-base.set", "@n8n/n8n-nodes-langchain.agent"
                        "pattern": "^[@A-Za-z0-9_/-]+\\.[A-Za-z0-9_.-]+$",
                    },
                    "typeVersion": {"type": "number"},
                    "position": {
                        "type": "array",
                        "items": {"type": "number"},
                        "minItems": 2,
                        "maxItems": 2,
                    },
                    "parameters": {"type": "object"},
                    "credentials": {"type": "object"},
                    "disabled": {"type": "boolean"},
                },
                "additionalProperties": True,
            },
        },
        "connections": {
            "type": "object",
            # source node name -> output label -> slots -> targets
            "additionalProperties": {
                "type": "object",
                "additionalProperties": {
                    "type": "array",
                    "items": {
                        "anyOf": [
                            {"type": "array", "items": _TARGET},
                            {"type": "null"},
                        ]
                    },
                },
            },
        },
        "settings": {"type": ["object", "null"]},
    },
    "additionalProperties": True,
}

_VALIDATOR = Draft7Validator(WORKFLOW_ENVELOPE_SCHEMA)


def check_envelope(doc: Any) -> List[str]:
    """Return human-readable schema violations (empty when the document is well-formed)."""
    issues: List[str] = []
    for e in sorted(_VALIDATOR.iter_errors(doc), key=lambda e: list(e.path)):
        where = "/".join(str(p) for p in e.path) or "<root>"
        issues.append(f"[SCHEMA] {where}: {e.message}")
    return issues


def load_workflow(doc: Any) -> Workflow:
    """Schema-check ``doc`` and build a Workflow, raising EnvelopeError on violations."""
    issues = check_envelope(doc)
    if issues:
        raise EnvelopeError(issues)
    return Workflow.from_dict(doc)
