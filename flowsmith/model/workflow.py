# flowsmith/model/workflow.py
"""
Workflow documents as plain dataclasses.

The wire shape is the n8n export format (camelCase keys, connection map
keyed by source node name). ``from_dict``/``to_dict`` translate between the
two; keys we do not model are kept in ``extra`` so a round trip never drops
data.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

# source name -> output label -> output slot -> targets
ConnectionMap = Dict[str, Dict[str, List[List["Connection"]]]]


@dataclass
class Connection:
    """One target of an output slot: which node, which input label, which input index."""
    node: str
    type: str = "main"
    index: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Connection":
        return cls(
            node=str(data.get("node", "")),
            type=str(data.get("type") or "main"),
            index=int(data.get("index") or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"node": self.node, "type": self.type, "index": self.index}


_NODE_KEYS = (
    "id", "name", "type", "typeVersion", "position",
    "parameters", "credentials", "disabled", "notes",
)


@dataclass
class Node:
    id: str
    name: str
    type: str
    type_version: float = 1
    position: Tuple[float, float] = (0, 0)
    parameters: Dict[str, Any] = field(default_factory=dict)
    credentials: Optional[Dict[str, Any]] = None
    disabled: Optional[bool] = None
    notes: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Node":
        pos = data.get("position") or (0, 0)
        if isinstance(pos, dict):
            pos = (pos.get("x", 0), pos.get("y", 0))
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name", "")),
            type=str(data.get("type", "")),
            type_version=data.get("typeVersion", 1),
            position=(pos[0], pos[1]),
            parameters=copy.deepcopy(data.get("parameters") or {}),
            credentials=copy.deepcopy(data.get("credentials")),
            disabled=data.get("disabled"),
            notes=data.get("notes"),
            extra={k: copy.deepcopy(v) for k, v in data.items() if k not in _NODE_KEYS},
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "typeVersion": self.type_version,
            "position": [self.position[0], self.position[1]],
            "parameters": copy.deepcopy(self.parameters),
        }
        if self.credentials is not None:
            out["credentials"] = copy.deepcopy(self.credentials)
        if self.disabled is not None:
            out["disabled"] = self.disabled
        if self.notes is not None:
            out["notes"] = self.notes
        out.update(copy.deepcopy(self.extra))
        return out


_WORKFLOW_KEYS = (
    "id", "name", "active", "nodes", "connections", "settings",
    "staticData", "tags", "createdAt", "updatedAt",
)


def connections_from_dict(data: Optional[Dict[str, Any]]) -> ConnectionMap:
    conns: ConnectionMap = {}
    for source, outputs in (data or {}).items():
        conns[source] = {}
        for label, slots in (outputs or {}).items():
            # exports sometimes carry null for an unused output slot
            conns[source][label] = [
                [Connection.from_dict(c) for c in (slot or [])] for slot in (slots or [])
            ]
    return conns


def connections_to_dict(conns: ConnectionMap) -> Dict[str, Any]:
    return {
        source: {
            label: [[c.to_dict() for c in slot] for slot in slots]
            for label, slots in outputs.items()
        }
        for source, outputs in conns.items()
    }


@dataclass
class Workflow:
    id: str
    name: str
    active: bool = False
    nodes: List[Node] = field(default_factory=list)
    connections: ConnectionMap = field(default_factory=dict)
    settings: Optional[Dict[str, Any]] = None
    static_data: Optional[Dict[str, Any]] = None
    tags: Optional[List[Dict[str, Any]]] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Workflow":
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name", "")),
            active=bool(data.get("active", False)),
            nodes=[Node.from_dict(n) for n in data.get("nodes") or []],
            connections=connections_from_dict(data.get("connections")),
            settings=copy.deepcopy(data.get("settings")),
            static_data=copy.deepcopy(data.get("staticData")),
            tags=copy.deepcopy(data.get("tags")),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
            extra={k: copy.deepcopy(v) for k, v in data.items() if k not in _WORKFLOW_KEYS},
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "active": self.active,
            "nodes": [n.to_dict() for n in self.nodes],
            "connections": connections_to_dict(self.connections),
        }
        optional = {
            "settings": self.settings,
            "staticData": self.static_data,
            "tags": self.tags,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        for key, value in optional.items():
            if value is not None:
                out[key] = copy.deepcopy(value)
        out.update(copy.deepcopy(self.extra))
        return out

    def clone(self) -> "Workflow":
        return copy.deepcopy(self)

    # ---- lookups keyed on node name (names are unique within a workflow) ----
    def find_node(self, name: str) -> Optional[Node]:
        for n in self.nodes:
            if n.name == name:
                return n
        return None

    def node_names(self) -> List[str]:
        return [n.name for n in self.nodes]

    def iter_connections(self) -> Iterator[Tuple[str, str, int, Connection]]:
        """Yield (source, output label, slot index, target) for every connection entry."""
        for source, outputs in self.connections.items():
            for label, slots in outputs.items():
                for slot_index, slot in enumerate(slots):
                    for conn in slot:
                        yield source, label, slot_index, conn
