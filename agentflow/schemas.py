import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id(prefix: str) -> str:
    """`exec-1712345678901-k3j9x2a1b` style identifiers."""
    return f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


class NodeMetadata(BaseModel):
    type: str
    description: str
    inputs: List[str]
    outputs: List[str]
    params: Dict[str, Any]


class Edge(BaseModel):
    id: Optional[str] = None
    source: str
    target: str
    sourceHandle: Optional[str] = None
    targetHandle: Optional[str] = None
    label: Optional[str] = None

    @property
    def branch(self) -> Optional[str]:
        """Source handle with the editor's "out-" prefix removed."""
        handle = self.sourceHandle
        if handle and handle.startswith("out-"):
            return handle[4:]
        return handle


class WorkflowNode(BaseModel):
    id: str
    type: str
    label: str = ""
    description: Optional[str] = None
    position: Dict[str, float] = Field(default_factory=lambda: {"x": 0.0, "y": 0.0})
    config: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _lift_editor_data(cls, values):
        # The editor sends {id, type: "custom", position, data: {label, type, config}}
        if not isinstance(values, dict) or not isinstance(values.get("data"), dict):
            return values
        values = dict(values)
        data = values.pop("data")
        if "config" in data or "label" in data or "type" in data:
            values["type"] = data.get("type") or values.get("type")
            values.setdefault("label", data.get("label", ""))
            values.setdefault("description", data.get("description"))
            values.setdefault("config", data.get("config") or {})
        else:
            values.setdefault("config", data)
        return values

    @model_validator(mode="after")
    def _default_label(self):
        if not self.label:
            self.label = self.id
        return self


class Workflow(BaseModel):
    id: str = Field(default_factory=lambda: new_id("wf"))
    name: str = "Untitled Workflow"
    description: Optional[str] = None
    nodes: List[WorkflowNode] = Field(default_factory=list)
    edges: List[Edge] = Field(default_factory=list)
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None

    def get_node(self, node_id: str) -> Optional[WorkflowNode]:
        return next((n for n in self.nodes if n.id == node_id), None)

    def outgoing(self, node_id: str) -> List[Edge]:
        return [e for e in self.edges if e.source == node_id]


class ExecutionStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class ExecutionLog(BaseModel):
    nodeId: str
    nodeName: str
    nodeType: Optional[str] = None
    status: ExecutionStatus = ExecutionStatus.PENDING
    input: Any = None
    output: Any = None
    error: Optional[str] = None
    startTime: str = Field(default_factory=now_iso)
    endTime: Optional[str] = None
    duration: Optional[int] = None  # milliseconds


class WorkflowExecution(BaseModel):
    id: str = Field(default_factory=lambda: new_id("exec"))
    workflowId: str
    status: ExecutionStatus = ExecutionStatus.PENDING
    logs: List[ExecutionLog] = Field(default_factory=list)
    startTime: str = Field(default_factory=now_iso)
    endTime: Optional[str] = None
    triggerData: Any = None
    error: Optional[str] = None


# --- Node configs, one model per node type ---

class NodeConfigModel(BaseModel):
    """Config fields are snake_case in Python and camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class TriggerConfig(NodeConfigModel):
    trigger_data: Any = None
    llm_base_url: str = ""
    llm_model: str = ""
    llm_api_key: str = ""


class AgentNodeConfig(NodeConfigModel):
    prompt: str = ""
    system_prompt: str = ""
    tools: List[str] = Field(default_factory=list)
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    model: Optional[str] = None
    enable_memory: bool = False
    conversation_id: str = ""


class LLMNodeConfig(NodeConfigModel):
    prompt: str = ""
    system_prompt: str = ""
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    model: str = ""
    api_base: str = ""
    api_key: str = ""


class LLMChainNodeConfig(NodeConfigModel):
    prompt: str = ""
    variables: Dict[str, Any] = Field(default_factory=dict)
    temperature: Optional[float] = None
    model_name: Optional[str] = None
    max_tokens: Optional[int] = None


class SequentialChainNodeConfig(NodeConfigModel):
    steps: List[Dict[str, Any]] = Field(default_factory=list)
    initial_input: Dict[str, Any] = Field(default_factory=dict)
    temperature: Optional[float] = None
    model_name: Optional[str] = None


class RouterChainNodeConfig(NodeConfigModel):
    routing_prompt: str = ""
    destinations: List[Dict[str, Any]] = Field(default_factory=list)
    default_destination: Optional[str] = None
    input: Dict[str, Any] = Field(default_factory=dict)
    temperature: Optional[float] = None
    model_name: Optional[str] = None


class MultiAgentNodeConfig(NodeConfigModel):
    task: str = ""
    mode: str = "supervised"
    agent_ids: List[str] = Field(default_factory=list)
    shared_context: Dict[str, Any] = Field(default_factory=dict)
    temperature: Optional[float] = None
    model: Optional[str] = None


class ConditionConfig(NodeConfigModel):
    left_value: Any = ""
    operator: str = "=="
    right_value: Any = ""


class ToolNodeConfig(NodeConfigModel):
    tool_name: str = ""
    parameters: Dict[str, Any] = Field(default_factory=dict)


class TransformConfig(NodeConfigModel):
    template: Any = ""
    parse_json: bool = False


# --- Agents ---

class ToolCall(BaseModel):
    toolName: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    result: Any = None
    timestamp: str = Field(default_factory=now_iso)


class AgentExecutionResult(BaseModel):
    success: bool
    output: str = ""
    reasoning: List[str] = Field(default_factory=list)
    toolCalls: List[ToolCall] = Field(default_factory=list)
    executionTime: int = 0
    iterations: int = 0
    error: Optional[str] = None
    conversationId: Optional[str] = None


class AgentType(str, Enum):
    GENERALIST = "generalist"
    RESEARCH = "research"
    WRITING = "writing"
    CODE = "code"
    ANALYSIS = "analysis"
    CREATIVE = "creative"
    SUPERVISOR = "supervisor"


class AgentDefinition(BaseModel):
    id: str
    type: AgentType = AgentType.GENERALIST
    name: str
    description: str = ""
    systemPrompt: str
    tools: List[str] = Field(default_factory=list)
    temperature: float = 0.7
    model: Optional[str] = None
    maxTokens: Optional[int] = None


class AgentMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sender: str = Field(alias="from")
    to: str
    content: str
    timestamp: float = Field(default_factory=time.time)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class TaskAssignment(BaseModel):
    agent: str
    subtask: str


class SupervisorDecision(BaseModel):
    selectedAgents: List[str]
    reasoning: str = ""
    executionMode: str = "sequential"
    taskBreakdown: List[TaskAssignment] = Field(default_factory=list)


class AgentRunResult(BaseModel):
    agentId: str
    agentName: str
    success: bool
    output: str = ""
    reasoning: List[str] = Field(default_factory=list)
    toolCalls: List[ToolCall] = Field(default_factory=list)
    executionTime: int = 0
    error: Optional[str] = None


class MultiAgentExecutionResult(BaseModel):
    executionId: str
    mode: str
    success: bool
    results: Dict[str, AgentRunResult] = Field(default_factory=dict)
    aggregatedOutput: str = ""
    supervisorDecision: Optional[SupervisorDecision] = None
    executionTime: int = 0
    error: Optional[str] = None


# --- Request bodies ---

class AgentExecuteRequest(BaseModel):
    prompt: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)


class MultiAgentRequest(BaseModel):
    task: Optional[str] = None
    mode: str = "supervised"
    agentIds: List[str] = Field(default_factory=list)
    sharedContext: Optional[Dict[str, Any]] = None
    temperature: Optional[float] = None
    model: Optional[str] = None


class ConversationRequest(BaseModel):
    message: Optional[str] = None
    conversationId: Optional[str] = None
    tools: List[str] = Field(default_factory=list)
    temperature: float = 0.1
    model: Optional[str] = None
    systemPrompt: Optional[str] = None


class RagQueryRequest(BaseModel):
    query: Optional[str] = None
    collectionName: Optional[str] = None
    k: Optional[int] = None
    includeSources: bool = True
    systemPrompt: Optional[str] = None


class WorkflowExecuteRequest(BaseModel):
    workflow: Optional[Workflow] = None
    triggerData: Any = None
