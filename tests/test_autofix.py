import pytest

from conftest import AGENT, MANUAL, WEBHOOK, count_targets, link, node, workflow
from flowsmith.fix.autofix import autofix_workflow
from flowsmith.model.results import ValidationWarning
from flowsmith.structural.rules import (
    RULE_CODE_NODE,
    RULE_EXPLICIT_REFERENCE,
    RULE_SNAKE_CASE,
    validate_workflow,
)


def fix(wf):
    return autofix_workflow(wf, validate_workflow(wf).warnings)


def test_scenario_rename_workflow_and_trigger():
    wf = workflow(name="My-Workflow", nodes=[node("MyTrigger", WEBHOOK)])
    result = fix(wf)

    assert result.workflow.name == "my_workflow"
    assert result.workflow.node_names() == ["my_trigger"]
    assert len(result.fixes) == 2
    assert result.unfixable == []
    assert [f.type for f in result.fixes] == ["rename", "rename"]
    assert result.fixes[1].before == "MyTrigger" and result.fixes[1].after == "my_trigger"
    # input untouched
    assert wf.name == "My-Workflow"


def test_node_rename_rewrites_connections():
    wf = workflow(
        nodes=[node("Start", MANUAL), node("FetchData"), node("store"), node("audit")],
        connections={
            "Start": {"main": [[{"node": "FetchData", "type": "main", "index": 0}]]},
            "FetchData": {"main": [
                [{"node": "store", "type": "main", "index": 0}],
                [{"node": "audit", "type": "main", "index": 0}],
            ]},
            "audit": {"main": [[{"node": "FetchData", "type": "main", "index": 1}]]},
        },
    )
    before = count_targets(wf)
    result = fix(wf)
    out = result.workflow

    assert count_targets(out) == before
    assert set(out.connections) == {"start", "fetch_data", "audit"}
    targets = [c.node for _s, _l, _i, c in out.iter_connections()]
    assert "FetchData" not in targets and "Start" not in targets
    assert targets.count("fetch_data") == 2
    # slot layout kept
    assert [c.node for c in out.connections["fetch_data"]["main"][1]] == ["audit"]
    assert out.connections["audit"]["main"][0][0].index == 1


def test_rename_collision_is_unfixable():
    wf = workflow(nodes=[node("my_step", MANUAL), node("MyStep")], connections=link(("my_step", "MyStep")))
    result = fix(wf)
    assert result.fixes == []
    assert [w.rule for w in result.unfixable] == [RULE_SNAKE_CASE]
    assert result.workflow.node_names() == ["my_step", "MyStep"]


def test_naming_warning_with_nothing_to_change_is_dropped():
    wf = workflow(name="fine")
    warning = ValidationWarning(rule=RULE_SNAKE_CASE, severity="warning", message="stale")
    result = autofix_workflow(wf, [warning])
    assert result.fixes == [] and result.unfixable == []


def test_explicit_reference_bound_to_upstream():
    wf = workflow(
        nodes=[node("trigger", MANUAL), node("process", value="={{ $json.field }}", other="keep me")],
        connections=link(("trigger", "process")),
    )
    result = fix(wf)
    params = result.workflow.find_node("process").parameters

    assert params["value"] == "={{ $('trigger').item.json.field }}"
    assert params["other"] == "keep me"
    assert len(result.fixes) == 1
    assert result.fixes[0].type == "expression_fix"
    assert result.unfixable == []


def test_explicit_reference_plain_and_nested_forms():
    wf = workflow(
        nodes=[
            node("trigger", MANUAL),
            node("process", body={"text": "Hello {{$json.name}}", "list": ["={{ $json.a + $json.b }}"]}),
        ],
        connections=link(("trigger", "process")),
    )
    params = fix(wf).workflow.find_node("process").parameters
    assert params["body"]["text"] == "Hello {{ $('trigger').item.json.name}}"
    assert params["body"]["list"] == ["={{ $('trigger').item.json.a + $('trigger').item.json.b }}"]


def test_explicit_reference_escapes_quotes_in_upstream_name():
    wf = workflow(
        nodes=[node('say "hi"', MANUAL), node("process", value="={{ $json.x }}")],
        connections=link(('say "hi"', "process")),
    )
    warnings = [w for w in validate_workflow(wf).warnings if w.rule == RULE_EXPLICIT_REFERENCE]
    params = autofix_workflow(wf, warnings).workflow.find_node("process").parameters
    assert params["value"] == "={{ $('say \"hi\"').item.json.x }}"


def test_explicit_reference_without_upstream_is_unfixable():
    wf = workflow(nodes=[node("trigger", MANUAL), node("process", value="={{ $json.x }}")])
    result = fix(wf)
    rules = [w.rule for w in result.unfixable]
    assert RULE_EXPLICIT_REFERENCE in rules
    assert result.workflow.find_node("process").parameters["value"] == "={{ $json.x }}"


def test_ai_structured_output_sets_flags_only():
    params = {"outputParser": True, "text": "Summarize", "options": {"temperature": 0.2}}
    wf = workflow(nodes=[node("trigger", MANUAL), node("agent", AGENT, **params)],
                  connections=link(("trigger", "agent")))
    result = fix(wf)
    fixed = result.workflow.find_node("agent").parameters

    assert fixed["promptType"] == "define"
    assert fixed["hasOutputParser"] is True
    for key, value in params.items():
        assert fixed[key] == value
    assert len(result.fixes) == 1 and result.fixes[0].type == "parameter_fix"


def test_ai_structured_output_half_set():
    wf = workflow(nodes=[node("trigger", MANUAL), node("agent", AGENT, promptType="define", outputParser=True)],
                  connections=link(("trigger", "agent")))
    result = fix(wf)
    assert "promptType" not in result.fixes[0].description
    assert result.workflow.find_node("agent").parameters["hasOutputParser"] is True


@pytest.mark.parametrize("node_type", ["n8n-nodes-base.code", "n8n-nodes-base.function"])
def test_other_rules_are_unfixable(node_type):
    wf = workflow(nodes=[node("trigger", MANUAL), node("run", node_type)], connections=link(("trigger", "run")))
    result = fix(wf)
    assert result.fixes == []
    assert [w.rule for w in result.unfixable] == [RULE_CODE_NODE]


def test_rename_then_expression_fix_sees_new_name():
    wf = workflow(
        nodes=[node("MyTrigger", MANUAL), node("process", value="={{ $json.x }}")],
        connections=link(("MyTrigger", "process")),
    )
    result = fix(wf)
    assert result.workflow.find_node("process").parameters["value"] == "={{ $('my_trigger').item.json.x }}"
    assert len(result.fixes) == 2


def test_expression_fix_on_node_renamed_in_same_pass():
    wf = workflow(
        nodes=[node("trigger", MANUAL), node("ProcessData", value="={{ $json.x }}")],
        connections=link(("trigger", "ProcessData")),
    )
    result = fix(wf)
    assert result.workflow.find_node("process_data").parameters["value"] == "={{ $('trigger').item.json.x }}"
    assert [f.type for f in result.fixes] == ["rename", "expression_fix"]
    assert result.fixes[1].target == "node:process_data"
    assert result.unfixable == []


def test_ai_structured_output_on_node_renamed_in_same_pass():
    wf = workflow(nodes=[node("trigger", MANUAL), node("AI Agent", AGENT, outputParser=True)],
                  connections=link(("trigger", "AI Agent")))
    result = fix(wf)
    params = result.workflow.find_node("ai_agent").parameters
    assert params["promptType"] == "define"
    assert params["hasOutputParser"] is True
    assert [f.type for f in result.fixes] == ["rename", "parameter_fix"]
    assert result.unfixable == []


def test_unfixable_warning_reported_under_new_name():
    wf = workflow(nodes=[node("trigger", MANUAL), node("RunScript", "n8n-nodes-base.code")],
                  connections=link(("trigger", "RunScript")))
    result = fix(wf)
    assert [(w.rule, w.node) for w in result.unfixable] == [(RULE_CODE_NODE, "run_script")]
