# flowsmith/fix/autofix.py
"""
Deterministic repairs for a fixed subset of validation findings.

``autofix_workflow`` works on one clone and applies fixes warning by warning,
so a later fix sees the result of an earlier one (a rename followed by an
expression fix on the renamed node, for instance). Warnings raised against a
node that was renamed earlier in the pass are redirected to the new name.
Warnings without a fixer, and warnings whose fixer could not change anything,
come back in ``unfixable`` under the node's current name.
"""

from __future__ import annotations

import json
from dataclasses import replace
from typing import Callable, Dict, List, Union

from flowsmith.expressions.patterns import (
    IMPLICIT_JSON_RE,
    IMPLICIT_JSON_TEMPLATE_RE,
    explicit_reference,
)
from flowsmith.model.results import AutofixAction, AutofixResult, ValidationWarning
from flowsmith.model.workflow import Workflow
from flowsmith.structural.naming import to_snake_case
from flowsmith.structural.rules import (
    PROMPT_TYPE_DEFINE,
    RULE_AI_STRUCTURED_OUTPUT,
    RULE_EXPLICIT_REFERENCE,
    RULE_SNAKE_CASE,
)
from flowsmith.utils.graph import find_previous_node
from flowsmith.utils.logger import get_logger

logger = get_logger("autofix")

# a fixer returns an action, None (could not fix) or NOTHING_TO_FIX
NOTHING_TO_FIX = object()
FixOutcome = Union[AutofixAction, None, object]


def autofix_workflow(workflow: Workflow, warnings: List[ValidationWarning]) -> AutofixResult:
    fixed = workflow.clone()
    fixes: List[AutofixAction] = []
    unfixable: List[ValidationWarning] = []
    # old node name -> name given by a rename earlier in this pass
    renamed: Dict[str, str] = {}

    for warning in warnings:
        if warning.node in renamed:
            warning = replace(warning, node=renamed[warning.node])
        fixer = _FIXERS.get(warning.rule)
        outcome = fixer(fixed, warning) if fixer else None
        if outcome is NOTHING_TO_FIX:
            continue
        if isinstance(outcome, AutofixAction):
            fixes.append(outcome)
            if outcome.type == "rename" and warning.node is not None:
                renamed[outcome.before] = outcome.after
        else:
            unfixable.append(warning)

    logger.debug("autofix %r: %d fixed, %d unfixable", workflow.id, len(fixes), len(unfixable))
    return AutofixResult(workflow=fixed, fixes=fixes, unfixable=unfixable)


# ---------- snake_case ----------

def fix_snake_case(workflow: Workflow, warning: ValidationWarning) -> FixOutcome:
    if warning.node is None:
        old = workflow.name
        new = to_snake_case(old)
        if new == old:
            return NOTHING_TO_FIX
        workflow.name = new
        return AutofixAction(
            type="rename",
            target="workflow",
            description="Renamed workflow to snake_case",
            before=old,
            after=new,
        )

    node = workflow.find_node(warning.node)
    if node is None:
        return None
    old = node.name
    new = to_snake_case(old)
    if new == old:
        return NOTHING_TO_FIX
    if workflow.find_node(new) is not None:
        # renaming would collide with an existing node name
        return None

    node.name = new
    rename_connections(workflow, old, new)
    return AutofixAction(
        type="rename",
        target=f"node:{old}",
        description="Renamed node to snake_case",
        before=old,
        after=new,
    )


def rename_connections(workflow: Workflow, old: str, new: str) -> None:
    """Point every connection reference to ``old`` (source key and targets) at ``new``."""
    workflow.connections = {
        (new if source == old else source): outputs
        for source, outputs in workflow.connections.items()
    }
    for _source, _label, _slot, conn in workflow.iter_connections():
        if conn.node == old:
            conn.node = new


# ---------- explicit_reference ----------

def fix_explicit_reference(workflow: Workflow, warning: ValidationWarning) -> FixOutcome:
    if warning.node is None:
        return None
    node = workflow.find_node(warning.node)
    if node is None:
        return None

    previous = find_previous_node(workflow, node.name)
    if previous is None:
        return None

    replacement = explicit_reference(previous)
    # the text being rewritten is JSON, so the inserted name must be JSON-escaped
    encoded = json.dumps(replacement, ensure_ascii=False)[1:-1]
    params = json.dumps(node.parameters, ensure_ascii=False)
    rewritten = IMPLICIT_JSON_TEMPLATE_RE.sub(lambda _m: "{{ " + encoded, params)
    rewritten = IMPLICIT_JSON_RE.sub(lambda _m: encoded, rewritten)
    if rewritten == params:
        return None

    node.parameters = json.loads(rewritten)
    return AutofixAction(
        type="expression_fix",
        target=f"node:{node.name}",
        description=f"Changed $json to explicit $('{previous}') reference",
        before="$json.",
        after=replacement,
    )


# ---------- ai_structured_output ----------

def fix_ai_structured_output(workflow: Workflow, warning: ValidationWarning) -> FixOutcome:
    if warning.node is None:
        return None
    node = workflow.find_node(warning.node)
    if node is None:
        return None

    changes: List[str] = []
    if node.parameters.get("promptType") != PROMPT_TYPE_DEFINE:
        node.parameters["promptType"] = PROMPT_TYPE_DEFINE
        changes.append(f'promptType: "{PROMPT_TYPE_DEFINE}"')
    if node.parameters.get("hasOutputParser") is not True:
        node.parameters["hasOutputParser"] = True
        changes.append("hasOutputParser: true")
    if not changes:
        return None

    return AutofixAction(
        type="parameter_fix",
        target=f"node:{node.name}",
        description=f"Added AI structured output settings: {', '.join(changes)}",
    )


_FIXERS: Dict[str, Callable[[Workflow, ValidationWarning], FixOutcome]] = {
    RULE_SNAKE_CASE: fix_snake_case,
    RULE_EXPLICIT_REFERENCE: fix_explicit_reference,
    RULE_AI_STRUCTURED_OUTPUT: fix_ai_structured_output,
}
