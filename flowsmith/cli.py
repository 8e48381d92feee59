#!/usr/bin/env python3
# flowsmith/cli.py

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

from flowsmith import pipeline
from flowsmith.fix.autofix import autofix_workflow
from flowsmith.fix.layout import format_workflow
from flowsmith.model.errors import FlowsmithError
from flowsmith.model.workflow import Workflow
from flowsmith.patch.operations import parse_operations
from flowsmith.remote.registry import NodeTypeRegistry
from flowsmith.remote.store import InMemoryWorkflowStore
from flowsmith.structural.rules import validate_workflow
from flowsmith.structural.schema import load_workflow
from flowsmith.utils.io import load_any, read_json, write_json
from flowsmith.utils.logger import attach_file_handler, get_logger
from flowsmith.versions.config import VersionConfig
from flowsmith.versions.store import VersionStore

logger = get_logger("cli")

app = typer.Typer(help="flowsmith CLI - validate, repair, patch and version n8n workflow files")
versions_app = typer.Typer(help="Local workflow snapshots")
app.add_typer(versions_app, name="versions")


@app.callback()
def main(
    log_dir: Optional[Path] = typer.Option(
        None, "--log-dir", help="Also write logs to LOG_DIR/flowsmith.log (default: $FLOWSMITH_LOG_DIR)"
    ),
):
    if log_dir is not None:
        attach_file_handler(log_dir)


# ---------- helpers ----------

def _fail(err: Exception) -> None:
    print(f"[error] {err}")
    raise typer.Exit(code=1)


def _load(input: Path) -> Workflow:
    wf = load_workflow(read_json(input))
    logger.debug("loaded %s (%d nodes)", input, len(wf.nodes))
    return wf


def _write_report(report: Optional[Path], payload: Dict[str, Any]) -> None:
    if report is None:
        return
    write_json(report, payload)
    print(f"[ok] wrote report to {report}")


def _version_store(storage_dir: Optional[Path], max_versions: Optional[int]) -> VersionStore:
    try:
        return VersionStore(VersionConfig.from_env(storage_dir=storage_dir, max_versions=max_versions))
    except ValueError as e:
        raise typer.BadParameter(str(e))


def _load_operations(path: Path) -> List[Any]:
    raw = load_any(path)
    if isinstance(raw, dict):
        raw = raw.get("operations")
    return parse_operations(raw)


# ---------- commands ----------

@app.command()
def validate(
    input: Path = typer.Option(..., "--input", "-i", exists=True, readable=True, help="Path to n8n workflow JSON"),
    check_types: bool = typer.Option(False, "--check-types", help="Flag node types missing from the bundled catalogue"),
    strict: bool = typer.Option(False, "--strict", help="Exit with code 1 when the workflow is not valid"),
    report: Optional[Path] = typer.Option(None, "--report", help="Write a JSON report to this path"),
):
    """
    Run the rule engine and the expression analyzer over a workflow file.
    """
    try:
        wf = _load(input)
    except FlowsmithError as e:
        _fail(e)

    registry = NodeTypeRegistry.from_file() if check_types else None
    result = pipeline.inspect_workflow(wf, registry=registry)

    print(f"Workflow: {wf.name} ({len(wf.nodes)} nodes)")
    print(f"Valid:    {result['valid']}")
    for w in result["warnings"]:
        where = f" [{w['node']}]" if w.get("node") else ""
        print(f"- {w['severity']}: {w['rule']}{where}: {w['message']}")
    for issue in result["expressionIssues"]:
        print(f"- {issue['severity']}: expression [{issue['node']}] {issue['parameter']}: {issue['issue']}")
    for cycle in result["circularReferences"] or []:
        print(f"- error: circular reference: {' -> '.join(cycle)}")
    for err in result.get("nodeTypeErrors", []):
        print(f"- error: {err['message']}")

    _write_report(report, {"input": str(input), **result})
    if strict and not result["valid"]:
        raise typer.Exit(code=1)


@app.command()
def autofix(
    input: Path = typer.Option(..., "--input", "-i", exists=True, readable=True, help="Path to n8n workflow JSON"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Where to write the fixed workflow (default: preview only)"),
    report: Optional[Path] = typer.Option(None, "--report", help="Write a JSON report to this path"),
):
    """
    Apply the deterministic fixes (naming, explicit references, AI structured output).
    """
    try:
        wf = _load(input)
    except FlowsmithError as e:
        _fail(e)

    result = autofix_workflow(wf, validate_workflow(wf).warnings)
    print(f"Fixes:     {len(result.fixes)}")
    for fix in result.fixes:
        print(f"- {fix.description} ({fix.target})")
    print(f"Unfixable: {len(result.unfixable)}")
    for w in result.unfixable:
        print(f"- {w.severity}: {w.rule}: {w.message}")

    if output is not None:
        write_json(output, result.workflow.to_dict())
        print(f"[ok] wrote {output}")
    _write_report(report, {
        "input": str(input),
        "fixes": [f.to_dict() for f in result.fixes],
        "unfixable": [w.to_dict() for w in result.unfixable],
    })


@app.command("format")
def format_cmd(
    input: Path = typer.Option(..., "--input", "-i", exists=True, readable=True, help="Path to n8n workflow JSON"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Where to write the formatted workflow (default: stdout)"),
):
    """
    Recompute node positions and drop null parameters.
    """
    try:
        wf = _load(input)
    except FlowsmithError as e:
        _fail(e)

    formatted = format_workflow(wf).to_dict()
    if output is None:
        print(json.dumps(formatted, ensure_ascii=False, indent=2))
        return
    write_json(output, formatted)
    print(f"[ok] wrote {output}")


@app.command()
def patch(
    input: Path = typer.Option(..., "--input", "-i", exists=True, readable=True, help="Path to n8n workflow JSON"),
    ops: Path = typer.Option(..., "--ops", exists=True, readable=True, help="Operations file (.json/.yaml): a list or {operations: [...]}"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Where to write the result (default: overwrite --input)"),
    versions_dir: Optional[Path] = typer.Option(None, "--versions-dir", help="Snapshot directory (default: FLOWSMITH_VERSIONS_DIR or ~/.flowsmith/versions)"),
    report: Optional[Path] = typer.Option(None, "--report", help="Write a JSON report to this path"),
):
    """
    Snapshot, apply patch operations, then validate, autofix and format the result.
    """
    versions = _version_store(versions_dir, None)
    try:
        wf = _load(input)
        operations = _load_operations(ops)
        store = InMemoryWorkflowStore()
        store.put(wf)
        wf_id = store.ids()[0]
        result = pipeline.update_workflow(store, versions, wf_id, operations)
    except (FlowsmithError, ValueError) as e:
        _fail(e)

    for w in result.patch_warnings:
        print(f"- patch: {w}")
    for fix in result.cleanup.auto_fixed:
        print(f"- fixed: {fix}")
    for w in result.cleanup.warnings:
        print(f"- {w.severity}: {w.rule}: {w.message}")
    if result.version_saved:
        print(f"[ok] snapshot {result.version_saved}")

    target = output or input
    write_json(target, store.get(wf_id).to_dict())
    print(f"[ok] wrote {target}")
    _write_report(report, {"input": str(input), **result.to_dict()})


@app.command("node-types")
def node_types(
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Substring of display name or type"),
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Exact category (case-insensitive)"),
    limit: int = typer.Option(100, "--limit", help="Maximum number of results"),
    list_categories: bool = typer.Option(False, "--categories", help="List categories instead of types"),
):
    """
    Search the bundled node type catalogue.
    """
    registry = NodeTypeRegistry.from_file()
    if list_categories:
        for cat in registry.categories():
            print(cat)
        return
    entries = registry.search(search=search, category=category, limit=limit)
    for e in entries:
        print(f"{e.type}\t{e.name}\t{e.category}")
    print(f"[ok] {len(entries)} of {registry.count()} node types")


# ---------- versions ----------

def _dir_option():
    return typer.Option(None, "--dir", help="Snapshot directory (default: FLOWSMITH_VERSIONS_DIR or ~/.flowsmith/versions)")


@versions_app.command("save")
def versions_save(
    input: Path = typer.Option(..., "--input", "-i", exists=True, readable=True, help="Path to n8n workflow JSON"),
    reason: str = typer.Option("manual", "--reason", help="Why the snapshot is taken"),
    storage_dir: Optional[Path] = _dir_option(),
    max_versions: Optional[int] = typer.Option(None, "--max-versions", help="Retention ceiling per workflow"),
):
    store = _version_store(storage_dir, max_versions)
    try:
        meta = store.save(_load(input), reason)
    except (FlowsmithError, ValueError) as e:
        _fail(e)
    if meta is None:
        print("No changes detected since last version")
        return
    print(f"[ok] saved {meta.id} ({meta.node_count} nodes, {meta.hash[:12]})")


@versions_app.command("list")
def versions_list(
    workflow_id: str = typer.Option(..., "--workflow-id", "-w", help="Workflow id"),
    storage_dir: Optional[Path] = _dir_option(),
):
    store = _version_store(storage_dir, None)
    metas = store.list(workflow_id)
    for m in metas:
        print(f"{m.id}\t{m.timestamp}\t{m.reason}\t{m.node_count} nodes")
    print(f"[ok] {len(metas)} versions")


@versions_app.command("show")
def versions_show(
    workflow_id: str = typer.Option(..., "--workflow-id", "-w", help="Workflow id"),
    version_id: str = typer.Option(..., "--version", "-v", help="Version id"),
    storage_dir: Optional[Path] = _dir_option(),
):
    store = _version_store(storage_dir, None)
    try:
        record = store.require(workflow_id, version_id)
    except FlowsmithError as e:
        _fail(e)
    print(json.dumps(record.to_dict(), ensure_ascii=False, indent=2))


@versions_app.command("diff")
def versions_diff(
    input: Path = typer.Option(..., "--input", "-i", exists=True, readable=True, help="Current workflow JSON (the default 'from' side)"),
    to_version: str = typer.Option(..., "--to", help="Version id to compare against"),
    from_version: Optional[str] = typer.Option(None, "--from", help="Version id for the 'from' side (default: --input)"),
    storage_dir: Optional[Path] = _dir_option(),
):
    versions = _version_store(storage_dir, None)
    try:
        wf = _load(input)
        store = InMemoryWorkflowStore()
        store.put(wf)
        diff = pipeline.diff_versions(store, versions, store.ids()[0], to_version, from_version)
    except FlowsmithError as e:
        _fail(e)
    print(f"from: {from_version or 'current'}")
    print(f"to:   {to_version}")
    print(diff.summary)
    for name in diff.nodes_added:
        print(f"+ {name}")
    for name in diff.nodes_removed:
        print(f"- {name}")
    for name in diff.nodes_modified:
        print(f"~ {name}")


@versions_app.command("rollback")
def versions_rollback(
    input: Path = typer.Option(..., "--input", "-i", exists=True, readable=True, help="Workflow JSON to restore into"),
    version_id: str = typer.Option(..., "--version", "-v", help="Version id to restore"),
    storage_dir: Optional[Path] = _dir_option(),
):
    versions = _version_store(storage_dir, None)
    try:
        wf = _load(input)
        store = InMemoryWorkflowStore()
        store.put(wf)
        wf_id = store.ids()[0]
        pipeline.rollback(store, versions, wf_id, version_id)
    except FlowsmithError as e:
        _fail(e)
    write_json(input, store.get(wf_id).to_dict())
    print(f"[ok] restored {version_id} into {input}")


@versions_app.command("delete")
def versions_delete(
    workflow_id: str = typer.Option(..., "--workflow-id", "-w", help="Workflow id"),
    storage_dir: Optional[Path] = _dir_option(),
):
    store = _version_store(storage_dir, None)
    count = store.delete_all(workflow_id)
    print(f"[ok] deleted {count} versions")


@versions_app.command("stats")
def versions_stats(storage_dir: Optional[Path] = _dir_option()):
    store = _version_store(storage_dir, None)
    print(json.dumps(store.stats(), ensure_ascii=False, indent=2))


if __name__ == "__main__":
    app()
