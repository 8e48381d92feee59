import pytest

from conftest import MANUAL, node, workflow
from flowsmith.model.errors import EnvelopeError, NotFoundError
from flowsmith.remote.gatekeeper import filter_settings, prepare_workflow_request
from flowsmith.remote.store import InMemoryWorkflowStore
from flowsmith.structural.schema import check_envelope, load_workflow


# ---------- gatekeeper ----------

def test_only_writable_fields_survive(linear):
    doc = linear.to_dict()
    doc.update({"active": True, "tags": [{"name": "x"}], "createdAt": "t", "pinData": {}})
    body = prepare_workflow_request(doc)
    assert set(body) == {"name", "nodes", "connections"}


def test_settings_filtered_key_by_key():
    settings = {
        "timezone": "Europe/Paris",
        "executionOrder": "v1",
        "saveDataErrorExecution": "sometimes",   # not in enum
        "executionTimeout": "soon",              # wrong type
        "callerPolicy": "workflowsFromSameOwner",
        "availableInMCP": True,
        "madeUpSetting": 1,
    }
    assert filter_settings(settings) == {
        "timezone": "Europe/Paris",
        "executionOrder": "v1",
        "callerPolicy": "workflowsFromSameOwner",
        "availableInMCP": True,
    }


def test_request_does_not_alias_input(linear):
    doc = linear.to_dict()
    body = prepare_workflow_request(doc)
    body["nodes"][0]["name"] = "changed"
    assert doc["nodes"][0]["name"] == "trigger"


def test_null_settings_become_empty():
    assert prepare_workflow_request({"name": "x", "settings": None})["settings"] == {}


# ---------- envelope ----------

def test_envelope_accepts_export(linear):
    assert check_envelope(linear.to_dict()) == []
    assert load_workflow(linear.to_dict()).node_names() == ["trigger", "process", "notify"]


def test_envelope_accepts_null_slots():
    doc = {"name": "x", "nodes": [], "connections": {"a": {"main": [None, []]}}}
    assert check_envelope(doc) == []


@pytest.mark.parametrize("doc", [
    {"nodes": [], "connections": {}},
    {"name": "x", "nodes": [{"name": "a"}], "connections": {}},
    {"name": "x", "nodes": [{"name": "a", "type": "noNamespace"}], "connections": {}},
    {"name": "x", "nodes": [], "connections": {"a": {"main": [[{"type": "main"}]]}}},
    [],
])
def test_envelope_rejects_malformed(doc):
    issues = check_envelope(doc)
    assert issues and all(i.startswith("[SCHEMA]") for i in issues)
    with pytest.raises(EnvelopeError):
        load_workflow(doc)


# ---------- in-memory store ----------

def test_store_lifecycle():
    clock_values = iter(["t1", "t2", "t3", "t4"])
    store = InMemoryWorkflowStore(id_factory=lambda: "new", clock=lambda: next(clock_values))
    draft = workflow(id="", name="draft", nodes=[node("trigger", MANUAL)], tags=[{"name": "x"}])

    created = store.create(draft)
    assert created.id == "new"
    assert created.active is False
    assert created.created_at == "t1" and created.updated_at == "t1"
    assert created.tags is None

    draft.name = "renamed"
    updated = store.update("new", draft)
    assert updated.name == "renamed"
    assert updated.created_at == "t1" and updated.updated_at == "t2"

    assert store.activate("new").active is True
    assert store.deactivate("new").active is False
    assert store.writes == 2

    store.delete("new")
    with pytest.raises(NotFoundError):
        store.get("new")


def test_store_unknown_id():
    store = InMemoryWorkflowStore()
    with pytest.raises(NotFoundError):
        store.update("ghost", workflow())


def test_put_keeps_document_verbatim(linear):
    store = InMemoryWorkflowStore()
    linear.tags = [{"name": "keep"}]
    store.put(linear)
    assert store.get("wf1").to_dict() == linear.to_dict()
