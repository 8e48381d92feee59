# flowsmith/remote/gatekeeper.py
"""
Request shaping before a workflow is written to the store.

The store rejects read-only fields (id, active, timestamps, tags) and
unknown settings, so only the writable subset is sent. Settings are checked
key by key; an unknown key or an invalid value is dropped, never an error.
"""

import copy
from typing import Any, Dict

from jsonschema import Draft7Validator

WRITABLE_FIELDS = ("name", "nodes", "connections", "settings", "staticData")

WORKFLOW_SETTINGS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "saveExecutionProgress": {"type": "boolean"},
        "saveManualExecutions": {"type": "boolean"},
        "saveDataErrorExecution": {"type": "string", "enum": ["all", "none"]},
        "saveDataSuccessExecution": {"type": "string", "enum": ["all", "none"]},
        "executionTimeout": {"type": "number"},
        "errorWorkflow": {"type": "string"},
        "timezone": {"type": "string"},
        "executionOrder": {"type": "string"},
        "callerPolicy": {
            "type": "string",
            "enum": ["any", "none", "workflowsFromAList", "workflowsFromSameOwner"],
        },
        "callerIds": {"type": "string"},
        "timeSavedPerExecution": {"type": "number"},
        "availableInMCP": {"type": "boolean"},
    },
    "additionalProperties": False,
}

_SETTING_VALIDATORS = {
    key: Draft7Validator(schema)
    for key, schema in WORKFLOW_SETTINGS_SCHEMA["properties"].items()
}


def filter_settings(settings: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: copy.deepcopy(value)
        for key, value in settings.items()
        if key in _SETTING_VALIDATORS and _SETTING_VALIDATORS[key].is_valid(value)
    }


def prepare_workflow_request(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of ``doc`` holding only writable top-level fields and known, valid settings."""
    out = {k: copy.deepcopy(doc[k]) for k in WRITABLE_FIELDS if k in doc}
    if isinstance(out.get("settings"), dict):
        out["settings"] = filter_settings(out["settings"])
    elif "settings" in out:
        out["settings"] = {}
    return out
