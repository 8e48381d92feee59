# flowsmith/versions/diff.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from flowsmith.model.workflow import Workflow, connections_to_dict


@dataclass
class VersionDiff:
    nodes_added: List[str] = field(default_factory=list)
    nodes_removed: List[str] = field(default_factory=list)
    nodes_modified: List[str] = field(default_factory=list)
    connections_changed: bool = False
    settings_changed: bool = False
    summary: str = "no changes"

    @property
    def changed(self) -> bool:
        return self.summary != "no changes"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodesAdded": list(self.nodes_added),
            "nodesRemoved": list(self.nodes_removed),
            "nodesModified": list(self.nodes_modified),
            "connectionsChanged": self.connections_changed,
            "settingsChanged": self.settings_changed,
            "summary": self.summary,
        }


def diff_workflows(old: Workflow, new: Workflow) -> VersionDiff:
    """
    Compare two workflow payloads by node name.
    Modified means present in both with different parameters; connections
    and settings are compared as whole structures.
    """
    old_nodes = {n.name: n for n in old.nodes}
    new_nodes = {n.name: n for n in new.nodes}

    diff = VersionDiff(
        nodes_added=[name for name in new_nodes if name not in old_nodes],
        nodes_removed=[name for name in old_nodes if name not in new_nodes],
        nodes_modified=[
            name for name, node in new_nodes.items()
            if name in old_nodes and old_nodes[name].parameters != node.parameters
        ],
        connections_changed=connections_to_dict(old.connections) != connections_to_dict(new.connections),
        settings_changed=(old.settings or {}) != (new.settings or {}),
    )

    parts: List[str] = []
    if diff.nodes_added:
        parts.append(f"+{len(diff.nodes_added)} nodes")
    if diff.nodes_removed:
        parts.append(f"-{len(diff.nodes_removed)} nodes")
    if diff.nodes_modified:
        parts.append(f"~{len(diff.nodes_modified)} modified")
    if diff.connections_changed:
        parts.append("connections changed")
    if diff.settings_changed:
        parts.append("settings changed")
    if parts:
        diff.summary = ", ".join(parts)
    return diff
