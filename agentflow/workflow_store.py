import json
import logging
import os
import threading
from typing import List, Optional

from .schemas import Workflow, now_iso

logger = logging.getLogger(__name__)


class WorkflowStore:
    """Saved workflows as one JSON array on disk."""

    def __init__(self, path):
        self.path = str(path)
        self._lock = threading.Lock()

    def _read(self) -> List[dict]:
        if not os.path.exists(self.path):
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.error(f"Could not read workflows from {self.path}: {e}")
            return []
        return data if isinstance(data, list) else []

    def _write(self, workflows: List[dict]):
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(workflows, f, indent=2)

    def list(self) -> List[Workflow]:
        workflows = []
        for raw in self._read():
            try:
                workflows.append(Workflow.model_validate(raw))
            except ValueError as e:
                logger.warning(f"Skipping invalid stored workflow {raw.get('id')}: {e}")
        return workflows

    def get(self, workflow_id: str) -> Optional[Workflow]:
        return next((w for w in self.list() if w.id == workflow_id), None)

    def save(self, workflow: Workflow) -> Workflow:
        """Insert or replace by id."""
        with self._lock:
            stored = self._read()
            now = now_iso()
            existing = next((w for w in stored if w.get("id") == workflow.id), None)
            workflow.createdAt = (existing or {}).get("createdAt") or workflow.createdAt or now
            workflow.updatedAt = now
            data = workflow.model_dump(mode="json")
            if existing is None:
                stored.append(data)
            else:
                stored[stored.index(existing)] = data
            self._write(stored)
        logger.info(f"Saved workflow {workflow.id}")
        return workflow

    def delete(self, workflow_id: str) -> bool:
        with self._lock:
            stored = self._read()
            remaining = [w for w in stored if w.get("id") != workflow_id]
            if len(remaining) == len(stored):
                return False
            self._write(remaining)
        logger.info(f"Deleted workflow {workflow_id}")
        return True
