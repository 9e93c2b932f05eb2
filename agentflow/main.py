import asyncio
import logging
from typing import List, Optional

import uvicorn
from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import config

from .agents.conversation import execute_conversational_agent, stream_conversation
from .agents.multi_agent import MultiAgentExecutor
from .agents.tool_loop import execute_agent
from .callbacks import LoggingCallbackHandler
from .chains.rag_chain import execute_rag_chain
from .engine import WorkflowExecutor
from .errors import AgentFlowError, NotFoundError, ValidationError
from .llm import check_connection
from .memory import format_chat_history, generate_conversation_id
from .node_registry import registry
from .runtime import Runtime
from .schemas import (
    AgentExecuteRequest,
    ConversationRequest,
    MultiAgentRequest,
    NodeMetadata,
    RagQueryRequest,
    Workflow,
    WorkflowExecuteRequest,
    now_iso,
)
from .websockets import manager
from .workflow_store import WorkflowStore

# Setup Logging
logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="AgentFlow")

runtime = Runtime()
workflow_store = WorkflowStore(config.WORKFLOWS_FILE)

TEXT_UPLOAD_TYPES = (".txt", ".md", ".markdown", ".json", ".csv")


@app.on_event("startup")
async def set_loop():
    # Executions run in worker threads and broadcast through this loop
    manager.loop = asyncio.get_running_loop()


# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code)


@app.exception_handler(AgentFlowError)
async def agentflow_error_handler(request: Request, exc: AgentFlowError):
    logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


@app.get("/")
def read_root():
    return {"message": "AgentFlow API"}


@app.get("/api/nodes", response_model=List[NodeMetadata])
def get_nodes():
    return registry.get_all_metadata()


@app.get("/api/tools")
def get_tools():
    return runtime.tools.metadata()


@app.get("/api/agents")
def get_agents():
    return [agent.model_dump(mode="json") for agent in runtime.agents.get_all()]


@app.get("/api/test-connection")
def test_connection():
    result = check_connection(runtime.chat_model())
    return JSONResponse(result, status_code=200 if result["success"] else 500)


# --- AGENT ENDPOINTS ---

@app.post("/api/agent/execute")
def agent_execute(body: AgentExecuteRequest):
    if not body.prompt:
        raise ValidationError("Prompt is required")

    cfg = body.config
    try:
        result = execute_agent(
            runtime,
            body.prompt,
            tools=cfg.get("tools") or [],
            system_prompt=cfg.get("systemPrompt"),
            temperature=cfg.get("temperature", 0.1),
            max_tokens=cfg.get("maxTokens") or 2000,
            model=cfg.get("model"),
            callback=LoggingCallbackHandler(),
        )
    except Exception as e:
        logger.error(f"Agent execution error: {e}")
        return JSONResponse(
            {"success": False, "error": str(e) or "Failed to execute agent", "output": "", "executionTime": 0},
            status_code=500,
        )
    return result.model_dump(mode="json")


@app.post("/api/multi-agent/execute")
def multi_agent_execute(body: MultiAgentRequest):
    if not body.task:
        raise ValidationError("Task is required")

    result = MultiAgentExecutor(runtime, callback=manager.event_callback).execute(
        body.task,
        mode=body.mode,
        agent_ids=body.agentIds,
        shared_context=body.sharedContext,
        temperature=body.temperature,
        model=body.model,
    )
    return JSONResponse(result.model_dump(mode="json"), status_code=200 if result.success else 500)


# --- CONVERSATION ENDPOINTS ---

@app.post("/api/conversation")
def conversation(body: ConversationRequest):
    if not body.message:
        raise ValidationError("Message is required")

    conversation_id = body.conversationId or generate_conversation_id()
    try:
        result = execute_conversational_agent(
            runtime,
            body.message,
            conversation_id,
            tools=body.tools,
            system_prompt=body.systemPrompt,
            temperature=body.temperature,
            model=body.model,
        )
    except Exception as e:
        logger.error(f"Conversation error: {e}")
        return JSONResponse({"error": "Failed to process conversation", "details": str(e)}, status_code=500)
    return {**result.model_dump(mode="json"), "conversationId": conversation_id}


@app.post("/api/conversation/stream")
def conversation_stream(body: ConversationRequest):
    if not body.message:
        raise ValidationError("Message is required")

    events = stream_conversation(
        runtime,
        body.message,
        body.conversationId,
        tools=body.tools,
        system_prompt=body.systemPrompt,
        temperature=body.temperature,
        model=body.model,
    )
    return StreamingResponse(
        events,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache, no-transform", "Connection": "keep-alive"},
    )


@app.get("/api/conversation")
def list_conversations():
    now = runtime.memory.clock()
    return {
        "conversations": [session.summary(now) for session in runtime.memory.all_sessions()],
        "stats": runtime.memory.stats(),
    }


@app.get("/api/conversation/{conversation_id}")
def get_conversation(conversation_id: str):
    messages = runtime.memory.load_history(conversation_id)
    return {
        "conversationId": conversation_id,
        "messageCount": len(messages),
        "messages": messages,
        "formattedHistory": format_chat_history(messages),
    }


@app.delete("/api/conversation/{conversation_id}")
def delete_conversation(conversation_id: str, action: Optional[str] = None):
    if action == "delete":
        if not runtime.memory.delete(conversation_id):
            raise NotFoundError("Conversation not found")
        return {"success": True, "message": "Conversation deleted", "conversationId": conversation_id}

    runtime.memory.clear(conversation_id)
    return {"success": True, "message": "Conversation memory cleared", "conversationId": conversation_id}


# --- RAG ENDPOINTS ---

def _load_upload(upload: UploadFile) -> dict:
    name = upload.filename or "document"
    if not name.lower().endswith(TEXT_UPLOAD_TYPES) and not (upload.content_type or "").startswith("text/"):
        raise ValidationError(f"Unsupported file type: {name}")
    content = upload.file.read().decode("utf-8")
    return {
        "content": content,
        "metadata": {"source": name, "type": upload.content_type or "text/plain", "uploadedAt": now_iso()},
    }


@app.post("/api/rag/upload")
def rag_upload(files: List[UploadFile] = File(None), collectionName: Optional[str] = Form(None)):
    if not files:
        raise ValidationError("No files provided")

    documents = []
    for upload in files:
        try:
            documents.append(_load_upload(upload))
        except (AgentFlowError, UnicodeDecodeError) as e:
            logger.warning(f"Skipping {upload.filename}: {e}")
    if not documents:
        raise ValidationError("Failed to load any documents")

    try:
        chunks = runtime.rag.add_documents(documents, collection=collectionName)
    except Exception as e:
        logger.error(f"Document upload failed: {e}")
        return JSONResponse({"success": False, "error": str(e) or "Failed to upload documents"}, status_code=500)

    return {
        "success": True,
        "message": f"Successfully uploaded {len(documents)} document(s)",
        "documentsUploaded": len(documents),
        "chunksCreated": chunks,
        "collectionName": collectionName or "documents",
    }


@app.post("/api/rag/query")
def rag_query(body: RagQueryRequest):
    if not body.query:
        raise ValidationError("Query is required")

    try:
        result = execute_rag_chain(
            runtime,
            body.query,
            k=body.k or 4,
            system_prompt=body.systemPrompt,
            include_sources=body.includeSources,
            collection=body.collectionName,
        )
    except Exception as e:
        logger.error(f"RAG query failed: {e}")
        return JSONResponse(
            {
                "success": False,
                "error": str(e) or "Failed to query documents",
                "answer": "I couldn't retrieve information from the documents. Make sure documents are uploaded.",
            },
            status_code=500,
        )
    sources = result.get("sources") or []
    return {"success": True, "answer": result["answer"], "sources": sources, "retrievedDocuments": len(sources)}


@app.get("/api/rag/status")
def rag_status(collectionName: Optional[str] = None):
    try:
        status = runtime.rag.status(collectionName)
    except Exception as e:
        logger.error(f"RAG status failed: {e}")
        return JSONResponse(
            {"success": False, "error": str(e), "hasVectorStore": False, "documentCount": 0},
            status_code=500,
        )
    count = status["documentCount"]
    return {
        "success": True,
        "hasVectorStore": True,
        **status,
        "message": (
            f"Vector store contains {count} document(s)" if count
            else "Vector store is empty. Please upload documents first."
        ),
    }


# --- WORKFLOW ENDPOINTS ---

@app.get("/api/workflows")
def list_workflows():
    return [w.model_dump(mode="json") for w in workflow_store.list()]


@app.post("/api/workflows")
def save_workflow(workflow: Workflow):
    return workflow_store.save(workflow).model_dump(mode="json")


@app.delete("/api/workflows")
def delete_workflow(id: Optional[str] = None):
    if not id:
        raise ValidationError("Workflow ID is required")
    workflow_store.delete(id)
    return {"success": True}


@app.post("/api/workflows/execute")
async def execute_workflow(body: WorkflowExecuteRequest):
    if body.workflow is None:
        raise ValidationError("Workflow is required")

    executor = WorkflowExecutor(
        body.workflow,
        trigger_data=body.triggerData,
        runtime=runtime,
        event_callback=manager.event_callback,
    )
    try:
        execution = await asyncio.to_thread(executor.execute)
    except Exception as e:
        logger.error(f"Workflow execution error: {e}")
        now = now_iso()
        return JSONResponse(
            {
                "id": "error",
                "workflowId": body.workflow.id,
                "status": "error",
                "logs": [{
                    "nodeId": "error",
                    "nodeName": "Error",
                    "status": "error",
                    "error": str(e) or "Failed to execute workflow",
                    "startTime": now,
                    "endTime": now,
                }],
                "startTime": now,
                "endTime": now,
            },
            status_code=500,
        )
    return execution.model_dump(mode="json")


@app.get("/api/workflows/{workflow_id}")
def load_workflow(workflow_id: str):
    workflow = workflow_store.get(workflow_id)
    if workflow is None:
        raise HTTPException(status_code=404, detail="Workflow not found")
    return workflow.model_dump(mode="json")


@app.websocket("/api/ws")
async def websocket_endpoint(websocket: WebSocket):
    await manager.connect(websocket)
    try:
        while True:
            # Keep alive / listen
            await websocket.receive_text()
    except Exception:
        manager.disconnect(websocket)


# Log Buffer
log_buffer = []


class ListHandler(logging.Handler):
    def emit(self, record):
        log_buffer.append(self.format(record))
        if len(log_buffer) > 100:
            log_buffer.pop(0)


handler = ListHandler()
formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
handler.setFormatter(formatter)
logging.getLogger().addHandler(handler)


@app.get("/api/logs")
def get_logs():
    return log_buffer


if __name__ == "__main__":
    uvicorn.run("agentflow.main:app", host="0.0.0.0", port=8000, reload=True, timeout_keep_alive=300)
