from datetime import datetime, timezone

import pytest

from conftest import MANUAL, StepClock, link, node, workflow
from flowsmith.model.errors import NotFoundError
from flowsmith.patch.engine import apply_patch
from flowsmith.patch.operations import Activate, UpdateName, UpdateNode
from flowsmith.versions.config import VersionConfig
from flowsmith.versions.diff import diff_workflows
from flowsmith.versions.store import VersionStore, content_hash


def variant(i: int):
    return workflow(nodes=[node("trigger", MANUAL, run=i)])


def make_store(tmp_path, **kwargs):
    return VersionStore(VersionConfig(storage_dir=tmp_path / "versions", **kwargs), clock=StepClock())


# ---------- hashing ----------

def test_hash_ignores_name_active_and_timestamps(linear):
    changed = apply_patch(linear, [UpdateName("other"), Activate()]).workflow
    changed.updated_at = "2030-01-01T00:00:00Z"
    assert content_hash(changed) == content_hash(linear)


def test_hash_tracks_parameters(linear):
    changed = apply_patch(linear, [UpdateNode("process", {"parameters": {"value": "y"}})]).workflow
    assert content_hash(changed) != content_hash(linear)


# ---------- save / dedup / retention ----------

def test_save_and_get(version_store, linear):
    meta = version_store.save(linear, "manual")
    assert meta is not None
    assert meta.workflow_id == "wf1"
    assert meta.node_count == 3
    assert meta.reason == "manual"
    assert meta.id.endswith("_" + meta.hash[:6])
    assert len(meta.hash) == 64

    record = version_store.get("wf1", meta.id)
    assert record.meta == meta
    assert record.workflow.to_dict() == linear.to_dict()
    assert (version_store.config.storage_dir / "wf1" / f"{meta.id}.json").is_file()


def test_dedup_identical_saves(version_store, linear):
    assert version_store.save(linear) is not None
    assert version_store.save(linear) is None
    assert len(version_store.list("wf1")) == 1


def test_dedup_only_against_newest(version_store):
    version_store.save(variant(1))
    version_store.save(variant(2))
    assert version_store.save(variant(1)) is not None
    assert len(version_store.list("wf1")) == 3


def test_retention_keeps_newest(tmp_path):
    store = make_store(tmp_path, max_versions=20)
    metas = [store.save(variant(i)) for i in range(25)]
    remaining = store.list("wf1")

    assert len(remaining) == 20
    assert [m.id for m in remaining] == [m.id for m in reversed(metas[5:])]
    for old in metas[:5]:
        assert store.get("wf1", old.id) is None


@pytest.mark.parametrize("n,k", [(3, 1), (7, 5), (4, 4)])
def test_retention_ceiling(tmp_path, n, k):
    store = make_store(tmp_path, max_versions=k)
    for i in range(n):
        store.save(variant(i))
    assert len(store.list("wf1")) == min(n, k)


def test_list_newest_first(version_store):
    for i in range(3):
        version_store.save(variant(i))
    timestamps = [m.timestamp for m in version_store.list("wf1")]
    assert timestamps == sorted(timestamps, reverse=True)


def test_timestamps_strictly_increase_with_frozen_clock(tmp_path):
    frozen = datetime(2024, 5, 1, tzinfo=timezone.utc)
    store = VersionStore(VersionConfig(storage_dir=tmp_path), clock=lambda: frozen)
    a = store.save(variant(1))
    b = store.save(variant(2))
    assert b.timestamp > a.timestamp
    assert store.list("wf1")[0].id == b.id
    assert store.latest("wf1").meta.id == b.id


def test_disabled_store_saves_nothing(tmp_path, linear):
    store = make_store(tmp_path, enabled=False)
    assert store.save(linear) is None
    assert store.list("wf1") == []


def test_missing_lookups(version_store):
    assert version_store.list("nope") == []
    assert version_store.latest("nope") is None
    assert version_store.get("wf1", "nope") is None
    assert version_store.get("wf1", "../escape") is None
    with pytest.raises(NotFoundError):
        version_store.require("wf1", "nope")


def test_invalid_workflow_id_is_rejected(version_store):
    with pytest.raises(ValueError):
        version_store.list("../etc")


def test_delete_all_and_stats(version_store):
    for i in range(3):
        version_store.save(variant(i))
    other = workflow(id="wf2", nodes=[node("trigger", MANUAL)])
    version_store.save(other)

    stats = version_store.stats()
    assert stats["workflowCount"] == 2
    assert stats["totalVersions"] == 4
    assert stats["maxVersions"] == 20

    assert version_store.delete_all("wf1") == 3
    assert version_store.list("wf1") == []
    assert not (version_store.config.storage_dir / "wf1").exists()
    assert version_store.stats()["totalVersions"] == 1


# ---------- config ----------

def test_config_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("FLOWSMITH_VERSIONS_ENABLED", "false")
    monkeypatch.setenv("FLOWSMITH_MAX_VERSIONS", "7")
    monkeypatch.setenv("FLOWSMITH_VERSIONS_DIR", str(tmp_path))
    cfg = VersionConfig.from_env()
    assert cfg.enabled is False
    assert cfg.max_versions == 7
    assert cfg.storage_dir == tmp_path


def test_config_arguments_override_env(monkeypatch, tmp_path):
    monkeypatch.setenv("FLOWSMITH_MAX_VERSIONS", "7")
    cfg = VersionConfig.from_env(storage_dir=tmp_path, max_versions=3)
    assert cfg.max_versions == 3
    assert cfg.storage_dir == tmp_path


@pytest.mark.parametrize("var,value", [
    ("FLOWSMITH_MAX_VERSIONS", "many"),
    ("FLOWSMITH_MAX_VERSIONS", "0"),
    ("FLOWSMITH_VERSIONS_ENABLED", "maybe"),
])
def test_config_rejects_bad_env(monkeypatch, var, value):
    monkeypatch.setenv(var, value)
    with pytest.raises(ValueError):
        VersionConfig.from_env()


# ---------- diff ----------

def test_diff_no_changes(linear):
    diff = diff_workflows(linear, linear.clone())
    assert diff.summary == "no changes"
    assert not diff.changed


def test_diff_summary():
    old = workflow(
        nodes=[node("trigger", MANUAL), node("a", v=1), node("b")],
        connections=link(("trigger", "a"), ("a", "b")),
        settings={"timezone": "UTC"},
    )
    new = workflow(
        nodes=[node("trigger", MANUAL), node("a", v=2), node("c"), node("d")],
        connections=link(("trigger", "a"), ("a", "c")),
        settings={"timezone": "Europe/Berlin"},
    )
    diff = diff_workflows(old, new)
    assert diff.nodes_added == ["c", "d"]
    assert diff.nodes_removed == ["b"]
    assert diff.nodes_modified == ["a"]
    assert diff.connections_changed and diff.settings_changed
    assert diff.summary == "+2 nodes, -1 nodes, ~1 modified, connections changed, settings changed"


def test_diff_position_only_change_is_not_modification(linear):
    moved = linear.clone()
    moved.nodes[0].position = (500, 500)
    assert diff_workflows(linear, moved).summary == "no changes"
