# flowsmith/model/results.py
"""Result containers shared by the rule engine, the fixer and the analyzer."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from flowsmith.model.workflow import Workflow


@dataclass
class ValidationWarning:
    rule: str
    severity: str  # "error" | "warning" | "info"
    message: str
    node: Optional[str] = None
    suggestion: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class ValidationResult:
    valid: bool
    warnings: List[ValidationWarning] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "warnings": [w.to_dict() for w in self.warnings]}


@dataclass
class AutofixAction:
    type: str  # "rename" | "expression_fix" | "parameter_fix"
    target: str
    description: str
    before: Optional[str] = None
    after: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class AutofixResult:
    workflow: Workflow
    fixes: List[AutofixAction] = field(default_factory=list)
    unfixable: List[ValidationWarning] = field(default_factory=list)


@dataclass
class ExpressionIssue:
    node: str
    parameter: str
    expression: str
    kind: str
    issue: str
    severity: str
    suggestion: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class NodeTypeError:
    node_type: str
    node_name: str
    message: str
    suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PatchResult:
    workflow: Workflow
    warnings: List[str] = field(default_factory=list)
