# flowsmith/patch/operations.py
"""
Patch operations: a closed set of nine dataclasses.

Callers usually send operations as JSON objects tagged with ``"type"``;
``parse_operation`` checks each one against a per-type JSON schema and turns
it into the matching dataclass. A structurally malformed operation is a
caller contract violation and is rejected with ``MalformedOperationError``
before anything is applied.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union

from jsonschema import Draft7Validator

from flowsmith.model.errors import MalformedOperationError


@dataclass(frozen=True)
class AddNode:
    node: Dict[str, Any]


@dataclass(frozen=True)
class RemoveNode:
    node_name: str


@dataclass(frozen=True)
class UpdateNode:
    node_name: str
    properties: Dict[str, Any]


@dataclass(frozen=True)
class AddConnection:
    source: str
    target: str
    source_output: int = 0
    target_input: int = 0
    output_type: str = "main"
    input_type: str = "main"


@dataclass(frozen=True)
class RemoveConnection:
    source: str
    target: str
    source_output: int = 0
    output_type: str = "main"


@dataclass(frozen=True)
class UpdateSettings:
    settings: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class UpdateName:
    name: str


@dataclass(frozen=True)
class Activate:
    pass


@dataclass(frozen=True)
class Deactivate:
    pass


PatchOperation = Union[
    AddNode, RemoveNode, UpdateNode, AddConnection, RemoveConnection,
    UpdateSettings, UpdateName, Activate, Deactivate,
]

OPERATION_TYPES = (
    AddNode, RemoveNode, UpdateNode, AddConnection, RemoveConnection,
    UpdateSettings, UpdateName, Activate, Deactivate,
)


# ---------- wire schemas (one per "type" tag) ----------

_NAME = {"type": "string", "minLength": 1}
_INDEX = {"type": "integer", "minimum": 0}

# node fields shared by addNode and updateNode.properties
_NODE_PROPERTIES: Dict[str, Any] = {
    "id": {"type": "string"},
    "name": _NAME,
    "type": _NAME,
    "typeVersion": {"type": "number"},
    "position": {"type": "array", "items": {"type": "number"}, "minItems": 2, "maxItems": 2},
    "parameters": {"type": "object"},
    "credentials": {"type": "object"},
    "disabled": {"type": "boolean"},
    "notes": {"type": "string"},
}

OPERATION_SCHEMAS: Dict[str, Dict[str, Any]] = {
    "addNode": {
        "type": "object",
        "required": ["node"],
        "properties": {
            "node": {
                "type": "object",
                "required": ["name", "type"],
                "properties": _NODE_PROPERTIES,
            },
        },
    },
    "removeNode": {
        "type": "object",
        "required": ["nodeName"],
        "properties": {"nodeName": _NAME},
    },
    "updateNode": {
        "type": "object",
        "required": ["nodeName", "properties"],
        "properties": {
            "nodeName": _NAME,
            "properties": {
                "type": "object",
                "properties": _NODE_PROPERTIES,
            },
        },
    },
    "addConnection": {
        "type": "object",
        "required": ["from", "to"],
        "properties": {
            "from": _NAME, "to": _NAME,
            "fromOutput": _INDEX, "toInput": _INDEX,
            "outputType": _NAME, "inputType": _NAME,
        },
    },
    "removeConnection": {
        "type": "object",
        "required": ["from", "to"],
        "properties": {
            "from": _NAME, "to": _NAME,
            "fromOutput": _INDEX, "outputType": _NAME,
        },
    },
    "updateSettings": {
        "type": "object",
        "required": ["settings"],
        "properties": {"settings": {"type": "object"}},
    },
    "updateName": {
        "type": "object",
        "required": ["name"],
        "properties": {"name": _NAME},
    },
    "activate": {"type": "object"},
    "deactivate": {"type": "object"},
}

_VALIDATORS = {tag: Draft7Validator(schema) for tag, schema in OPERATION_SCHEMAS.items()}


def parse_operation(raw: Dict[str, Any]) -> PatchOperation:
    """Turn one wire-format operation into its dataclass, or raise MalformedOperationError."""
    if not isinstance(raw, dict):
        raise MalformedOperationError(f"operation must be an object, got {type(raw).__name__}")
    tag = raw.get("type")
    validator = _VALIDATORS.get(tag)
    if validator is None:
        raise MalformedOperationError(f"unknown operation type: {tag!r}")

    errors = sorted(validator.iter_errors(raw), key=lambda e: list(e.path))
    if errors:
        first = errors[0]
        where = ".".join(str(p) for p in first.path) or "<root>"
        raise MalformedOperationError(f"{tag}: {where}: {first.message}")

    if tag == "addNode":
        return AddNode(node=dict(raw["node"]))
    if tag == "removeNode":
        return RemoveNode(node_name=raw["nodeName"])
    if tag == "updateNode":
        return UpdateNode(node_name=raw["nodeName"], properties=dict(raw["properties"]))
    if tag == "addConnection":
        return AddConnection(
            source=raw["from"],
            target=raw["to"],
            source_output=raw.get("fromOutput", 0),
            target_input=raw.get("toInput", 0),
            output_type=raw.get("outputType", "main"),
            input_type=raw.get("inputType", "main"),
        )
    if tag == "removeConnection":
        return RemoveConnection(
            source=raw["from"],
            target=raw["to"],
            source_output=raw.get("fromOutput", 0),
            output_type=raw.get("outputType", "main"),
        )
    if tag == "updateSettings":
        return UpdateSettings(settings=dict(raw["settings"]))
    if tag == "updateName":
        return UpdateName(name=raw["name"])
    if tag == "activate":
        return Activate()
    return Deactivate()


def parse_operations(raw_ops: Optional[Iterable[Dict[str, Any]]]) -> List[PatchOperation]:
    """Parse a whole operation list; nothing is returned unless every entry is well-formed."""
    if raw_ops is None:
        raise MalformedOperationError("operations list is required")
    ops: List[PatchOperation] = []
    for i, raw in enumerate(raw_ops):
        try:
            ops.append(parse_operation(raw))
        except MalformedOperationError as e:
            raise MalformedOperationError(f"operation #{i}: {e}") from e
    return ops
