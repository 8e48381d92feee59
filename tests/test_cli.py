import json
import logging
from logging.handlers import RotatingFileHandler

import pytest
from typer.testing import CliRunner

from conftest import WEBHOOK, link, node, workflow
from flowsmith.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_versions(monkeypatch, tmp_path):
    monkeypatch.setenv("FLOWSMITH_VERSIONS_DIR", str(tmp_path / "versions"))
    monkeypatch.delenv("FLOWSMITH_VERSIONS_ENABLED", raising=False)
    monkeypatch.delenv("FLOWSMITH_MAX_VERSIONS", raising=False)


@pytest.fixture
def wf_file(tmp_path):
    wf = workflow(
        name="My-Workflow",
        nodes=[node("MyTrigger", WEBHOOK), node("process", value="={{ $json.field }}")],
        connections=link(("MyTrigger", "process")),
    )
    path = tmp_path / "wf.json"
    path.write_text(json.dumps(wf.to_dict()), encoding="utf-8")
    return path


def read(path):
    return json.loads(path.read_text(encoding="utf-8"))


def test_validate_prints_warnings_and_report(wf_file, tmp_path):
    report = tmp_path / "out" / "report.json"
    result = runner.invoke(app, ["validate", "-i", str(wf_file), "--report", str(report)])
    assert result.exit_code == 0, result.output
    assert "snake_case" in result.output
    assert "implicit_json" not in result.output  # only severity/rule/message lines
    payload = read(report)
    assert payload["valid"] is True
    assert {w["rule"] for w in payload["warnings"]} == {"snake_case", "explicit_reference"}
    assert payload["expressionIssues"][0]["kind"] == "implicit_json"


def test_validate_rejects_malformed_document(tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"nodes": []}), encoding="utf-8")
    result = runner.invoke(app, ["validate", "-i", str(bad)])
    assert result.exit_code == 1
    assert "[SCHEMA]" in result.output


def test_validate_strict_exit_code(tmp_path):
    path = tmp_path / "wf.json"
    path.write_text(json.dumps(workflow(nodes=[node("trigger", WEBHOOK)]).to_dict()), encoding="utf-8")
    assert runner.invoke(app, ["validate", "-i", str(path), "--strict"]).exit_code == 0


def test_autofix_writes_output(wf_file, tmp_path):
    out = tmp_path / "fixed.json"
    result = runner.invoke(app, ["autofix", "-i", str(wf_file), "-o", str(out)])
    assert result.exit_code == 0, result.output
    assert "Fixes:     3" in result.output
    fixed = read(out)
    assert fixed["name"] == "my_workflow"
    assert [n["name"] for n in fixed["nodes"]] == ["my_trigger", "process"]
    assert fixed["nodes"][1]["parameters"]["value"] == "={{ $('my_trigger').item.json.field }}"
    # input untouched
    assert read(wf_file)["name"] == "My-Workflow"


def test_format_to_stdout(wf_file):
    result = runner.invoke(app, ["format", "-i", str(wf_file)])
    assert result.exit_code == 0, result.output
    doc = json.loads(result.output)
    assert [n["name"] for n in doc["nodes"]] == ["MyTrigger", "process"]
    assert doc["nodes"][0]["position"][0] < doc["nodes"][1]["position"][0]


def test_patch_from_yaml(wf_file, tmp_path):
    ops = tmp_path / "ops.yaml"
    ops.write_text(
        "operations:\n"
        "  - type: addNode\n"
        "    node: {name: notify, type: n8n-nodes-base.noOp}\n"
        "  - type: addConnection\n"
        "    from: process\n"
        "    to: notify\n",
        encoding="utf-8",
    )
    out = tmp_path / "patched.json"
    result = runner.invoke(app, ["patch", "-i", str(wf_file), "--ops", str(ops), "-o", str(out)])
    assert result.exit_code == 0, result.output
    assert "[ok] snapshot" in result.output
    patched = read(out)
    assert patched["name"] == "my_workflow"
    assert {n["name"] for n in patched["nodes"]} == {"my_trigger", "process", "notify"}
    assert (tmp_path / "versions" / "wf1").is_dir()


def test_patch_rejects_malformed_operations(wf_file, tmp_path):
    ops = tmp_path / "ops.json"
    ops.write_text(json.dumps([{"type": "removeNode"}]), encoding="utf-8")
    result = runner.invoke(app, ["patch", "-i", str(wf_file), "--ops", str(ops)])
    assert result.exit_code == 1
    assert "operation #0" in result.output
    assert read(wf_file)["name"] == "My-Workflow"


def test_node_types_search():
    result = runner.invoke(app, ["node-types", "--search", "slack"])
    assert result.exit_code == 0, result.output
    assert "n8n-nodes-base.slack" in result.output


def test_versions_roundtrip(wf_file):
    saved = runner.invoke(app, ["versions", "save", "-i", str(wf_file)])
    assert saved.exit_code == 0, saved.output
    again = runner.invoke(app, ["versions", "save", "-i", str(wf_file)])
    assert "No changes detected" in again.output

    listed = runner.invoke(app, ["versions", "list", "-w", "wf1"])
    assert "[ok] 1 versions" in listed.output
    version_id = listed.output.splitlines()[0].split("\t")[0]

    shown = runner.invoke(app, ["versions", "show", "-w", "wf1", "-v", version_id])
    assert json.loads(shown.output)["meta"]["id"] == version_id

    doc = read(wf_file)
    doc["nodes"].append(node("extra"))
    wf_file.write_text(json.dumps(doc), encoding="utf-8")
    diffed = runner.invoke(app, ["versions", "diff", "-i", str(wf_file), "--to", version_id])
    assert "-1 nodes" in diffed.output

    rolled = runner.invoke(app, ["versions", "rollback", "-i", str(wf_file), "-v", version_id])
    assert rolled.exit_code == 0, rolled.output
    assert len(read(wf_file)["nodes"]) == 2

    stats = json.loads(runner.invoke(app, ["versions", "stats"]).output)
    assert stats["totalVersions"] == 2

    deleted = runner.invoke(app, ["versions", "delete", "-w", "wf1"])
    assert "[ok] deleted 2 versions" in deleted.output


def test_versions_show_missing():
    result = runner.invoke(app, ["versions", "show", "-w", "wf1", "-v", "nope"])
    assert result.exit_code == 1
    assert "not found" in result.output


def test_patch_rejects_bad_node_position(wf_file, tmp_path):
    ops = tmp_path / "ops.json"
    ops.write_text(json.dumps([
        {"type": "updateNode", "nodeName": "process", "properties": {"position": [5]}},
    ]), encoding="utf-8")
    result = runner.invoke(app, ["patch", "-i", str(wf_file), "--ops", str(ops)])
    assert result.exit_code == 1
    assert "operation #0" in result.output
    assert "position" in result.output


@pytest.fixture
def file_logging():
    yield
    base = logging.getLogger("flowsmith")
    for handler in [h for h in base.handlers if isinstance(h, RotatingFileHandler)]:
        base.removeHandler(handler)
        handler.close()


def test_log_dir_option_writes_log_file(wf_file, tmp_path, file_logging):
    logs = tmp_path / "logs"
    result = runner.invoke(app, ["--log-dir", str(logs), "versions", "save", "-i", str(wf_file)])
    assert result.exit_code == 0, result.output
    assert "saved snapshot" in (logs / "flowsmith.log").read_text(encoding="utf-8")

    # a second run swaps the file handler instead of stacking another one
    runner.invoke(app, ["--log-dir", str(logs), "versions", "stats"])
    handlers = logging.getLogger("flowsmith").handlers
    assert sum(isinstance(h, RotatingFileHandler) for h in handlers) == 1
