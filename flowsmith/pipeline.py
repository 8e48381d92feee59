# flowsmith/pipeline.py
"""
Orchestration of the engines against a WorkflowStore and a VersionStore.

Mutations follow one order: snapshot -> patch -> validate -> autofix ->
format -> write back (only when something changed). Callers get the
residual, unfixable warnings; blocking on error-severity warnings is their
decision.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from flowsmith.expressions.analyzer import validate_expressions
from flowsmith.expressions.references import check_circular_references
from flowsmith.fix.autofix import autofix_workflow
from flowsmith.fix.layout import format_workflow
from flowsmith.model.results import AutofixAction, ValidationWarning
from flowsmith.model.workflow import Workflow
from flowsmith.patch.engine import IdFactory, apply_patch
from flowsmith.patch.operations import PatchOperation
from flowsmith.remote.registry import NodeTypeRegistry
from flowsmith.remote.store import WorkflowStore
from flowsmith.structural.node_types import validate_node_types
from flowsmith.structural.rules import validate_workflow
from flowsmith.utils.io import canonical_json
from flowsmith.utils.logger import get_logger
from flowsmith.versions.diff import VersionDiff, diff_workflows
from flowsmith.versions.store import VersionMeta, VersionStore

logger = get_logger("pipeline")


@dataclass
class CleanupResult:
    workflow: Workflow
    valid: bool
    warnings: List[ValidationWarning] = field(default_factory=list)  # unfixable only
    auto_fixed: List[str] = field(default_factory=list)
    written: bool = False

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "workflow": self.workflow.to_dict(),
            "validation": {
                "valid": self.valid,
                "warnings": [w.to_dict() for w in self.warnings],
            },
            "written": self.written,
        }
        if self.auto_fixed:
            out["autoFixed"] = list(self.auto_fixed)
        return out


@dataclass
class UpdateResult:
    cleanup: CleanupResult
    patch_warnings: List[str] = field(default_factory=list)
    version_saved: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out = self.cleanup.to_dict()
        out["patchWarnings"] = list(self.patch_warnings)
        out["versionSaved"] = self.version_saved
        return out


@dataclass
class PreviewResult:
    applied: bool
    workflow: Workflow
    fixes: List[AutofixAction] = field(default_factory=list)
    unfixable: List[ValidationWarning] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "applied": self.applied,
            "fixes": [f.to_dict() for f in self.fixes],
            "unfixable": [w.to_dict() for w in self.unfixable],
            ("workflow" if self.applied else "previewWorkflow"): self.workflow.to_dict(),
        }


def auto_cleanup(store: WorkflowStore, workflow: Workflow) -> CleanupResult:
    """Validate, autofix and format ``workflow``; persist only if that changed anything."""
    validation = validate_workflow(workflow)
    fixed = autofix_workflow(workflow, validation.warnings)
    formatted = format_workflow(fixed.workflow)

    written = False
    if fixed.fixes or canonical_json(workflow.to_dict()) != canonical_json(formatted.to_dict()):
        formatted = store.update(workflow.id, formatted)
        written = True
        logger.info("cleanup wrote back workflow %s (%d fixes)", workflow.id, len(fixed.fixes))
    else:
        logger.debug("cleanup of %s changed nothing; no write", workflow.id)

    return CleanupResult(
        workflow=formatted,
        valid=not any(w.severity == "error" for w in fixed.unfixable),
        warnings=fixed.unfixable,
        auto_fixed=[f.description for f in fixed.fixes],
        written=written,
    )


def create_workflow(store: WorkflowStore, workflow: Workflow) -> CleanupResult:
    created = store.create(workflow)
    return auto_cleanup(store, created)


def update_workflow(
    store: WorkflowStore,
    versions: VersionStore,
    workflow_id: str,
    operations: Sequence[PatchOperation],
    id_factory: Optional[IdFactory] = None,
) -> UpdateResult:
    current = store.get(workflow_id)
    saved = versions.save(current, "before_update")

    patched = apply_patch(current, operations, id_factory=id_factory)
    updated = store.update(workflow_id, patched.workflow)
    # the write path ignores the active flag; it has its own endpoints
    if patched.workflow.active != current.active:
        updated = store.activate(workflow_id) if patched.workflow.active else store.deactivate(workflow_id)

    cleanup = auto_cleanup(store, updated)
    return UpdateResult(
        cleanup=cleanup,
        patch_warnings=patched.warnings,
        version_saved=saved.id if saved else None,
    )


def autofix_stored(store: WorkflowStore, versions: VersionStore, workflow_id: str, apply: bool = False) -> PreviewResult:
    workflow = store.get(workflow_id)
    validation = validate_workflow(workflow)
    result = autofix_workflow(workflow, validation.warnings)

    if apply and result.fixes:
        versions.save(workflow, "before_autofix")
        store.update(workflow_id, result.workflow)
        logger.info("applied %d fixes to workflow %s", len(result.fixes), workflow_id)
        return PreviewResult(True, result.workflow, result.fixes, result.unfixable)
    return PreviewResult(False, result.workflow, result.fixes, result.unfixable)


def format_stored(store: WorkflowStore, versions: VersionStore, workflow_id: str, apply: bool = False) -> PreviewResult:
    workflow = store.get(workflow_id)
    formatted = format_workflow(workflow)
    if apply:
        versions.save(workflow, "before_format")
        store.update(workflow_id, formatted)
        logger.info("formatted workflow %s", workflow_id)
        return PreviewResult(True, formatted)
    return PreviewResult(False, formatted)


def inspect_workflow(workflow: Workflow, registry: Optional[NodeTypeRegistry] = None) -> Dict[str, Any]:
    """Read-only report: rule warnings, expression issues, reference cycles, unknown node types."""
    validation = validate_workflow(workflow)
    cycles = check_circular_references(workflow)
    report: Dict[str, Any] = {
        "workflowId": workflow.id,
        "workflowName": workflow.name,
        "valid": validation.valid,
        "warnings": [w.to_dict() for w in validation.warnings],
        "expressionIssues": [i.to_dict() for i in validate_expressions(workflow)],
        "circularReferences": cycles or None,
    }
    if registry is not None:
        report["nodeTypeErrors"] = [e.to_dict() for e in validate_node_types(workflow.nodes, registry.known_types())]
    return report


def save_version(store: WorkflowStore, versions: VersionStore, workflow_id: str, reason: str = "manual") -> Optional[VersionMeta]:
    return versions.save(store.get(workflow_id), reason)


def rollback(store: WorkflowStore, versions: VersionStore, workflow_id: str, version_id: str) -> Workflow:
    """Restore a snapshot; the current state is snapshotted first as "before_rollback"."""
    record = versions.require(workflow_id, version_id)
    current = store.get(workflow_id)
    versions.save(current, "before_rollback")
    restored = store.update(workflow_id, record.workflow)
    logger.info("rolled back workflow %s to %s", workflow_id, version_id)
    return restored


def diff_versions(
    store: WorkflowStore,
    versions: VersionStore,
    workflow_id: str,
    to_version: str,
    from_version: Optional[str] = None,
) -> VersionDiff:
    """Diff from ``from_version`` (default: the stored workflow's current state) to ``to_version``."""
    target = versions.require(workflow_id, to_version)
    if from_version:
        source = versions.require(workflow_id, from_version).workflow
    else:
        source = store.get(workflow_id)
    return diff_workflows(source, target.workflow)
