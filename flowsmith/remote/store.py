# flowsmith/remote/store.py
from __future__ import annotations

import abc
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from flowsmith.model.errors import NotFoundError
from flowsmith.model.workflow import Workflow
from flowsmith.remote.gatekeeper import prepare_workflow_request
from flowsmith.utils.logger import get_logger

logger = get_logger("remote")


class WorkflowStore(abc.ABC):
    """Where workflows live. Every method raises NotFoundError for an unknown id."""

    @abc.abstractmethod
    def get(self, workflow_id: str) -> Workflow: ...

    @abc.abstractmethod
    def create(self, workflow: Workflow) -> Workflow: ...

    @abc.abstractmethod
    def update(self, workflow_id: str, workflow: Workflow) -> Workflow: ...

    @abc.abstractmethod
    def delete(self, workflow_id: str) -> Workflow: ...

    @abc.abstractmethod
    def activate(self, workflow_id: str) -> Workflow: ...

    @abc.abstractmethod
    def deactivate(self, workflow_id: str) -> Workflow: ...


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


class InMemoryWorkflowStore(WorkflowStore):
    """
    Dict-backed store with server-like write semantics: writes go through
    prepare_workflow_request, the store owns id/active/createdAt/updatedAt.
    """

    def __init__(
        self,
        id_factory: Optional[Callable[[], str]] = None,
        clock: Optional[Callable[[], str]] = None,
    ):
        self._docs: Dict[str, Dict[str, Any]] = {}
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex[:16])
        self._clock = clock or _now_iso
        self.writes = 0

    def _doc(self, workflow_id: str) -> Dict[str, Any]:
        if workflow_id not in self._docs:
            raise NotFoundError(f"Workflow not found: {workflow_id}")
        return self._docs[workflow_id]

    def put(self, workflow: Workflow) -> None:
        """Seed a workflow verbatim, bypassing write semantics (local files, fixtures)."""
        if not workflow.id:
            workflow = workflow.clone()
            workflow.id = self._id_factory()
        self._docs[workflow.id] = workflow.to_dict()

    def ids(self) -> List[str]:
        return list(self._docs)

    def get(self, workflow_id: str) -> Workflow:
        return Workflow.from_dict(self._doc(workflow_id))

    def create(self, workflow: Workflow) -> Workflow:
        body = prepare_workflow_request(workflow.to_dict())
        now = self._clock()
        workflow_id = workflow.id or self._id_factory()
        doc = {"id": workflow_id, "active": False, "createdAt": now, "updatedAt": now}
        doc.update(body)
        self._docs[workflow_id] = doc
        self.writes += 1
        logger.debug("created workflow %s", workflow_id)
        return Workflow.from_dict(doc)

    def update(self, workflow_id: str, workflow: Workflow) -> Workflow:
        doc = self._doc(workflow_id)
        doc.update(prepare_workflow_request(workflow.to_dict()))
        doc["updatedAt"] = self._clock()
        self.writes += 1
        logger.debug("updated workflow %s", workflow_id)
        return Workflow.from_dict(doc)

    def delete(self, workflow_id: str) -> Workflow:
        doc = self._doc(workflow_id)
        del self._docs[workflow_id]
        return Workflow.from_dict(doc)

    def activate(self, workflow_id: str) -> Workflow:
        return self._set_active(workflow_id, True)

    def deactivate(self, workflow_id: str) -> Workflow:
        return self._set_active(workflow_id, False)

    def _set_active(self, workflow_id: str, active: bool) -> Workflow:
        doc = self._doc(workflow_id)
        doc["active"] = active
        doc["updatedAt"] = self._clock()
        return Workflow.from_dict(doc)
