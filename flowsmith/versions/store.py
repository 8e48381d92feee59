# flowsmith/versions/store.py
"""
Local, content-addressed workflow snapshots.

Layout on disk::

    <storage_dir>/<workflow_id>/<timestamp>_<hash6>.json   {"meta": {...}, "workflow": {...}}

A save is skipped when the content hash equals the newest snapshot's hash,
and every save prunes the directory down to ``max_versions`` snapshots.
The store holds no locks: callers serialize access per workflow id.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from flowsmith.model.errors import NotFoundError
from flowsmith.model.workflow import Workflow, connections_to_dict
from flowsmith.utils.io import canonical_json, ensure_dir, list_files, read_json, write_json
from flowsmith.utils.logger import get_logger
from flowsmith.versions.config import VersionConfig

logger = get_logger("versions")

Clock = Callable[[], datetime]

_VERSION_ID_RE = re.compile(r"^[\w\-]+$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def content_hash(workflow: Workflow) -> str:
    """SHA-256 over nodes, connections and settings (not name, active flag or timestamps)."""
    payload = {
        "nodes": [n.to_dict() for n in workflow.nodes],
        "connections": connections_to_dict(workflow.connections),
        "settings": workflow.settings,
    }
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class VersionMeta:
    id: str
    workflow_id: str
    workflow_name: str
    timestamp: str
    reason: str
    node_count: int
    hash: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "workflowId": self.workflow_id,
            "workflowName": self.workflow_name,
            "timestamp": self.timestamp,
            "reason": self.reason,
            "nodeCount": self.node_count,
            "hash": self.hash,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VersionMeta":
        return cls(
            id=data["id"],
            workflow_id=data["workflowId"],
            workflow_name=data.get("workflowName", ""),
            timestamp=data["timestamp"],
            reason=data.get("reason", ""),
            node_count=int(data.get("nodeCount", 0)),
            hash=data["hash"],
        )


@dataclass(frozen=True)
class VersionRecord:
    meta: VersionMeta
    workflow: Workflow

    def to_dict(self) -> Dict[str, Any]:
        return {"meta": self.meta.to_dict(), "workflow": self.workflow.to_dict()}


class VersionStore:
    def __init__(self, config: Optional[VersionConfig] = None, clock: Optional[Clock] = None):
        self.config = config or VersionConfig()
        self._clock = clock or _utcnow

    # ---------- paths ----------
    def _workflow_dir(self, workflow_id: str) -> Path:
        if not workflow_id or workflow_id in (".", "..") or "/" in workflow_id or "\\" in workflow_id:
            raise ValueError(f"invalid workflow id for snapshot storage: {workflow_id!r}")
        return self.config.storage_dir / workflow_id

    def _version_file(self, workflow_id: str, version_id: str) -> Path:
        return self._workflow_dir(workflow_id) / f"{version_id}.json"

    # ---------- operations ----------
    def save(self, workflow: Workflow, reason: str = "manual") -> Optional[VersionMeta]:
        """Snapshot ``workflow``; returns None when disabled or nothing changed since the newest snapshot."""
        if not self.config.enabled:
            return None

        digest = content_hash(workflow)
        existing = self.list(workflow.id)
        if existing and existing[0].hash == digest:
            logger.debug("skip snapshot of %s: unchanged (%s)", workflow.id, digest[:6])
            return None

        ts = self._clock()
        if existing:
            # keep timestamps strictly increasing so newest-first order is total
            newest = datetime.fromisoformat(existing[0].timestamp)
            if ts <= newest:
                ts = newest + timedelta(microseconds=1)
        timestamp = ts.isoformat(timespec="microseconds")
        version_id = f"{re.sub(r'[:.+]', '-', timestamp)}_{digest[:6]}"

        meta = VersionMeta(
            id=version_id,
            workflow_id=workflow.id,
            workflow_name=workflow.name,
            timestamp=timestamp,
            reason=reason,
            node_count=len(workflow.nodes),
            hash=digest,
        )
        ensure_dir(self._workflow_dir(workflow.id))
        write_json(self._version_file(workflow.id, version_id), VersionRecord(meta, workflow).to_dict())
        logger.info("saved snapshot %s of workflow %s (%s)", version_id, workflow.id, reason)

        self.prune(workflow.id)
        return meta

    def list(self, workflow_id: str) -> List[VersionMeta]:
        """Snapshot metadata for ``workflow_id``, newest first."""
        wf_dir = self._workflow_dir(workflow_id)
        if not wf_dir.is_dir():
            return []
        metas: List[VersionMeta] = []
        for fp in list_files(wf_dir, "*.json"):
            data = read_json(fp)
            if isinstance(data, dict) and data.get("meta"):
                metas.append(VersionMeta.from_dict(data["meta"]))
        metas.sort(key=lambda m: (m.timestamp, m.id), reverse=True)
        return metas

    def get(self, workflow_id: str, version_id: str) -> Optional[VersionRecord]:
        if not _VERSION_ID_RE.match(version_id or ""):
            return None
        fp = self._version_file(workflow_id, version_id)
        if not fp.is_file():
            return None
        data = read_json(fp)
        return VersionRecord(
            meta=VersionMeta.from_dict(data["meta"]),
            workflow=Workflow.from_dict(data["workflow"]),
        )

    def require(self, workflow_id: str, version_id: str) -> VersionRecord:
        record = self.get(workflow_id, version_id)
        if record is None:
            raise NotFoundError(f"Version {version_id} not found for workflow {workflow_id}")
        return record

    def latest(self, workflow_id: str) -> Optional[VersionRecord]:
        metas = self.list(workflow_id)
        if not metas:
            return None
        return self.get(workflow_id, metas[0].id)

    def prune(self, workflow_id: str) -> int:
        """Delete all but the ``max_versions`` newest snapshots; returns how many were removed."""
        metas = self.list(workflow_id)
        excess = metas[self.config.max_versions:]
        for meta in excess:
            self._version_file(workflow_id, meta.id).unlink()
        if excess:
            logger.info("pruned %d old snapshot(s) of workflow %s", len(excess), workflow_id)
        return len(excess)

    def delete_all(self, workflow_id: str) -> int:
        metas = self.list(workflow_id)
        for meta in metas:
            self._version_file(workflow_id, meta.id).unlink()
        wf_dir = self._workflow_dir(workflow_id)
        if wf_dir.is_dir() and not any(wf_dir.iterdir()):
            wf_dir.rmdir()
        logger.info("deleted %d snapshot(s) of workflow %s", len(metas), workflow_id)
        return len(metas)

    def stats(self) -> Dict[str, Any]:
        root = self.config.storage_dir
        workflow_ids = sorted(p.name for p in root.iterdir() if p.is_dir()) if root.is_dir() else []
        return {
            "enabled": self.config.enabled,
            "storageDir": str(root),
            "maxVersions": self.config.max_versions,
            "workflowCount": len(workflow_ids),
            "totalVersions": sum(len(self.list(wid)) for wid in workflow_ids),
        }
