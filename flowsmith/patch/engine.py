# flowsmith/patch/engine.py

from __future__ import annotations

import uuid
from typing import Callable, Dict, List, Optional, Sequence

from flowsmith.model.errors import MalformedOperationError
from flowsmith.model.results import PatchResult
from flowsmith.model.workflow import Connection, Node, Workflow
from flowsmith.patch.operations import (
    OPERATION_TYPES,
    Activate,
    AddConnection,
    AddNode,
    Deactivate,
    PatchOperation,
    RemoveConnection,
    RemoveNode,
    UpdateName,
    UpdateNode,
    UpdateSettings,
)
from flowsmith.utils.logger import get_logger

logger = get_logger("patch")

IdFactory = Callable[[], str]


def _new_id() -> str:
    return str(uuid.uuid4())


def apply_patch(
    workflow: Workflow,
    operations: Sequence[PatchOperation],
    id_factory: Optional[IdFactory] = None,
) -> PatchResult:
    """
    Apply ``operations`` in order to a copy of ``workflow``.

    Each operation sees the effects of the ones before it. Missing targets never
    raise; they are reported in ``warnings`` and the operation is skipped.
    ``id_factory`` supplies ids for added nodes that do not carry one
    (defaults to random UUIDs).
    """
    result = workflow.clone()
    warnings: List[str] = []
    make_id = id_factory or _new_id

    for op in operations:
        handler = _HANDLERS.get(type(op))
        if handler is None:
            raise MalformedOperationError(f"unsupported operation: {op!r}")
        handler(result, op, warnings, make_id)

    logger.debug("applied %d operations to %r (%d warnings)", len(operations), workflow.id, len(warnings))
    return PatchResult(workflow=result, warnings=warnings)


# ---------- per-operation handlers (mutate the working copy) ----------

def _add_node(wf: Workflow, op: AddNode, warnings: List[str], make_id: IdFactory) -> None:
    data = dict(op.node)
    if not data.get("id"):
        data["id"] = make_id()
    data.setdefault("typeVersion", 1)
    data.setdefault("position", [0, 0])
    data.setdefault("parameters", {})
    node = Node.from_dict(data)
    if wf.find_node(node.name) is not None:
        warnings.append(f"Node name already exists: {node.name}")
    wf.nodes.append(node)


def _remove_node(wf: Workflow, op: RemoveNode, warnings: List[str], make_id: IdFactory) -> None:
    idx = next((i for i, n in enumerate(wf.nodes) if n.name == op.node_name), None)
    if idx is None:
        warnings.append(f"Node not found: {op.node_name}")
        return
    del wf.nodes[idx]

    wf.connections.pop(op.node_name, None)
    for outputs in wf.connections.values():
        for label, slots in outputs.items():
            # keep the slots themselves: output indices are positional
            outputs[label] = [[c for c in slot if c.node != op.node_name] for slot in slots]


def _update_node(wf: Workflow, op: UpdateNode, warnings: List[str], make_id: IdFactory) -> None:
    for i, node in enumerate(wf.nodes):
        if node.name == op.node_name:
            break
    else:
        warnings.append(f"Node not found: {op.node_name}")
        return

    new_params = op.properties.get("parameters")
    if isinstance(new_params, dict):
        missing = [k for k in node.parameters if k not in new_params]
        if missing:
            warnings.append(
                f'WARNING: Updating "{op.node_name}" will remove parameters: {", ".join(missing)}. '
                "Include all existing parameters to preserve them."
            )

    # shallow merge on the wire shape; "parameters" replaces the whole bag
    merged = node.to_dict()
    merged.update(op.properties)
    wf.nodes[i] = Node.from_dict(merged)


def _add_connection(wf: Workflow, op: AddConnection, warnings: List[str], make_id: IdFactory) -> None:
    outputs = wf.connections.setdefault(op.source, {})
    slots = outputs.setdefault(op.output_type, [])
    while len(slots) <= op.source_output:
        slots.append([])
    slots[op.source_output].append(
        Connection(node=op.target, type=op.input_type, index=op.target_input)
    )


def _remove_connection(wf: Workflow, op: RemoveConnection, warnings: List[str], make_id: IdFactory) -> None:
    slots = wf.connections.get(op.source, {}).get(op.output_type, [])
    if op.source_output >= len(slots):
        return
    slot = slots[op.source_output]
    for i, conn in enumerate(slot):
        if conn.node == op.target:
            del slot[i]
            return


def _update_settings(wf: Workflow, op: UpdateSettings, warnings: List[str], make_id: IdFactory) -> None:
    wf.settings = {**(wf.settings or {}), **op.settings}


def _update_name(wf: Workflow, op: UpdateName, warnings: List[str], make_id: IdFactory) -> None:
    wf.name = op.name


def _activate(wf: Workflow, op: Activate, warnings: List[str], make_id: IdFactory) -> None:
    wf.active = True


def _deactivate(wf: Workflow, op: Deactivate, warnings: List[str], make_id: IdFactory) -> None:
    wf.active = False


_HANDLERS: Dict[type, Callable[[Workflow, PatchOperation, List[str], IdFactory], None]] = {
    AddNode: _add_node,
    RemoveNode: _remove_node,
    UpdateNode: _update_node,
    AddConnection: _add_connection,
    RemoveConnection: _remove_connection,
    UpdateSettings: _update_settings,
    UpdateName: _update_name,
    Activate: _activate,
    Deactivate: _deactivate,
}

# every member of the operation union must have a handler
assert set(_HANDLERS) == set(OPERATION_TYPES), "patch handler table out of sync with OPERATION_TYPES"
