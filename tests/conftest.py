import itertools
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from flowsmith.model.workflow import Workflow
from flowsmith.versions.config import VersionConfig
from flowsmith.versions.store import VersionStore

SET = "n8n-nodes-base.set"
WEBHOOK = "n8n-nodes-base.webhook"
MANUAL = "n8n-nodes-base.manualTrigger"
AGENT = "@n8n/n8n-nodes-langchain.agent"


def node(name: str, type: str = SET, **parameters: Any) -> Dict[str, Any]:
    return {
        "id": f"id-{name}",
        "name": name,
        "type": type,
        "typeVersion": 1,
        "position": [0, 0],
        "parameters": parameters,
    }


def link(*pairs) -> Dict[str, Any]:
    """Connection map for (source, target) pairs, all on main output 0."""
    conns: Dict[str, Any] = {}
    for src, dst in pairs:
        conns.setdefault(src, {"main": [[]]})["main"][0].append({"node": dst, "type": "main", "index": 0})
    return conns


def workflow(name: str = "test_workflow", nodes: Optional[List[Dict[str, Any]]] = None,
             connections: Optional[Dict[str, Any]] = None, **extra: Any) -> Workflow:
    doc = {
        "id": extra.pop("id", "wf1"),
        "name": name,
        "active": False,
        "nodes": nodes or [],
        "connections": connections or {},
    }
    doc.update(extra)
    return Workflow.from_dict(doc)


def count_targets(wf: Workflow) -> int:
    return sum(1 for _ in wf.iter_connections())


class StepClock:
    """Deterministic clock: one second per call."""

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self._now += timedelta(seconds=1)
        return self._now


@pytest.fixture
def ids():
    counter = itertools.count(1)
    return lambda: f"gen-{next(counter)}"


@pytest.fixture
def version_store(tmp_path):
    return VersionStore(VersionConfig(storage_dir=tmp_path / "versions", max_versions=20), clock=StepClock())


@pytest.fixture
def linear():
    """trigger -> process -> notify"""
    return workflow(
        nodes=[node("trigger", MANUAL), node("process", value="x"), node("notify")],
        connections=link(("trigger", "process"), ("process", "notify")),
    )
