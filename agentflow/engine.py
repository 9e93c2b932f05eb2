"""
Workflow execution.

The graph is walked depth first from the trigger node. Each node is a
PocketFlow node run against one shared state dict whose "context" entry
holds every output so far, keyed by node id and by slugified label.
Branches get their own copy of the visited set, so a node reachable along
two paths runs once per path while back edges are skipped.
"""
import logging
import time
from typing import Any, Dict, Optional, Set

from . import callbacks as cb
from .errors import WorkflowError
from .node_registry import NodeRegistry, registry
from .runtime import Runtime
from .schemas import ExecutionLog, ExecutionStatus, Workflow, WorkflowExecution, now_iso

logger = logging.getLogger(__name__)


class WorkflowExecutor:
    def __init__(
        self,
        workflow: Workflow,
        trigger_data: Any = None,
        runtime: Optional[Runtime] = None,
        event_callback=None,
        node_registry: NodeRegistry = registry,
    ):
        self.workflow = workflow
        self.runtime = runtime or Runtime()
        self.event_callback = event_callback
        self.node_registry = node_registry
        self.execution = WorkflowExecution(workflowId=workflow.id, triggerData=trigger_data)
        self.shared: Dict[str, Any] = {"context": {}}
        if trigger_data is not None:
            self.shared["trigger_data"] = trigger_data
            self.shared["context"]["trigger"] = trigger_data

    def execute(self) -> WorkflowExecution:
        """Run the workflow. Failures end up on the returned execution, never raised."""
        self.execution.status = ExecutionStatus.RUNNING
        logger.info(f"Executing workflow {self.workflow.name} ({self.workflow.id}), execution {self.execution.id}")
        cb.emit(self.event_callback, cb.WORKFLOW_START, workflowId=self.workflow.id, executionId=self.execution.id)

        try:
            triggers = [n for n in self.workflow.nodes if n.type == "trigger"]
            if not triggers:
                raise WorkflowError("No trigger node found in workflow")
            if len(triggers) > 1:
                logger.warning(f"Workflow has {len(triggers)} trigger nodes, starting from {triggers[0].id}")
            self._execute_node(triggers[0].id, set())
            self.execution.status = ExecutionStatus.SUCCESS
        except Exception as e:
            logger.error(f"Workflow execution failed: {e}")
            self.execution.status = ExecutionStatus.ERROR
            self.execution.error = str(e)

        self.execution.endTime = now_iso()
        logger.info(f"Workflow execution {self.execution.id} finished: {self.execution.status.value}")
        cb.emit(
            self.event_callback,
            cb.WORKFLOW_END,
            workflowId=self.workflow.id,
            executionId=self.execution.id,
            status=self.execution.status.value,
            error=self.execution.error,
        )
        return self.execution

    def get_context(self) -> Dict[str, Any]:
        return self.shared["context"]

    def _build_node(self, node):
        node_class = self.node_registry.get_node_class(node.type)
        return node_class().setup(node, runtime=self.runtime, on_event=self.event_callback)

    def _execute_node(self, node_id: str, visited: Set[str]):
        if node_id in visited:
            logger.warning(f"Node {node_id} already visited, skipping to prevent loop")
            return None
        visited.add(node_id)

        node = self.workflow.get_node(node_id)
        if node is None:
            logger.warning(f"Edge points to unknown node {node_id}, skipping")
            return None

        log = ExecutionLog(nodeId=node.id, nodeName=node.label, nodeType=node.type, status=ExecutionStatus.RUNNING)
        self.execution.logs.append(log)
        logger.info(f"Executing node: {node.label} ({node.type})")

        start = time.time()
        pf_node = None
        try:
            pf_node = self._build_node(node)
            action = pf_node.run(self.shared)
        except Exception as e:
            log.status = ExecutionStatus.ERROR
            log.error = str(e)
            log.input = getattr(pf_node, "input", None)
            log.endTime = now_iso()
            log.duration = int((time.time() - start) * 1000)
            logger.error(f"Node {node.label} failed: {e}")
            raise

        log.input = pf_node.input
        log.output = pf_node.output
        log.status = ExecutionStatus.SUCCESS
        log.endTime = now_iso()
        log.duration = int((time.time() - start) * 1000)
        logger.info(f"Node {node.label} completed in {log.duration}ms: {str(pf_node.output)[:100]}")

        self._execute_next_nodes(node_id, action, visited)
        return pf_node.output

    def _execute_next_nodes(self, node_id: str, action: Optional[str], visited: Set[str]):
        edges = self.workflow.outgoing(node_id)
        if not edges:
            logger.debug(f"No more nodes after {node_id}")
            return

        for edge in edges:
            # Branching nodes name the output to follow
            if action is not None and edge.branch != action:
                logger.debug(f"Skipping edge to {edge.target} (branch {edge.branch} not taken)")
                continue
            self._execute_node(edge.target, set(visited))
