import logging

import pytest
from fastapi.testclient import TestClient

from agentflow import main
from agentflow.workflow_store import WorkflowStore

client = TestClient(main.app)

WORKFLOW = {
    "id": "wf-1",
    "name": "Greeting",
    "nodes": [
        {"id": "start", "type": "custom", "data": {"label": "Start", "type": "trigger", "config": {}}},
        {"id": "greet", "type": "custom", "data": {"label": "Greet", "type": "transform",
                                                   "config": {"template": "Hi {{trigger.name}}"}}},
    ],
    "edges": [{"id": "e1", "source": "start", "target": "greet"}],
}


@pytest.fixture(autouse=True)
def app_state(monkeypatch, runtime, tmp_path):
    monkeypatch.setattr(main, "runtime", runtime)
    monkeypatch.setattr(main, "workflow_store", WorkflowStore(tmp_path / "workflows.json"))


def test_root_and_metadata():
    assert client.get("/").json() == {"message": "AgentFlow API"}

    nodes = client.get("/api/nodes").json()
    assert "condition" in {n["type"] for n in nodes}

    tools = {t["name"] for t in client.get("/api/tools").json()}
    assert {"calculator", "http_request", "search_web", "rag_search"} <= tools

    agents = {a["id"] for a in client.get("/api/agents").json()}
    assert "supervisor-agent" in agents


def test_agent_execute(fake_llm):
    fake_llm.queue('USE_TOOL: calculator\nPARAMETERS: {"expression": "2+2"}', "FINAL_ANSWER: 4")

    response = client.post("/api/agent/execute", json={"prompt": "2+2?", "config": {"tools": ["calculator"]}})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["output"] == "4"
    assert body["toolCalls"][0]["toolName"] == "calculator"


def test_agent_execute_logs_agent_events(fake_llm, caplog):
    caplog.set_level(logging.DEBUG, logger="agentflow.callbacks")
    fake_llm.queue("FINAL_ANSWER: hi")

    client.post("/api/agent/execute", json={"prompt": "say hi"})

    assert any(r.getMessage().startswith("[complete]") for r in caplog.records if r.name == "agentflow.callbacks")


def test_agent_execute_requires_prompt():
    response = client.post("/api/agent/execute", json={"config": {}})
    assert response.status_code == 400
    assert response.json() == {"error": "Prompt is required"}


def test_agent_execute_unexpected_failure(monkeypatch):
    def explode(*args, **kwargs):
        raise RuntimeError("factory broke")

    monkeypatch.setattr(main, "execute_agent", explode)
    response = client.post("/api/agent/execute", json={"prompt": "x"})

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "factory broke", "output": "", "executionTime": 0}


def test_multi_agent_execute(fake_llm):
    fake_llm.default = "FINAL_ANSWER: done"

    response = client.post(
        "/api/multi-agent/execute",
        json={"task": "write", "mode": "parallel", "agentIds": ["writing-agent", "creative-agent"]},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert set(body["results"]) == {"writing-agent", "creative-agent"}


def test_multi_agent_requires_task():
    assert client.post("/api/multi-agent/execute", json={"mode": "parallel"}).status_code == 400


def test_conversation_round_trip(fake_llm):
    fake_llm.queue("Hi Sam!")

    response = client.post("/api/conversation", json={"message": "I am Sam", "conversationId": "conv-api"})
    assert response.status_code == 200
    assert response.json()["conversationId"] == "conv-api"

    history = client.get("/api/conversation/conv-api").json()
    assert history["messageCount"] == 2
    assert history["formattedHistory"] == "USER: I am Sam\nASSISTANT: Hi Sam!"

    listing = client.get("/api/conversation").json()
    assert listing["stats"]["totalSessions"] == 1
    assert listing["conversations"][0]["id"] == "conv-api"

    cleared = client.delete("/api/conversation/conv-api").json()
    assert cleared["message"] == "Conversation memory cleared"
    assert client.get("/api/conversation/conv-api").json()["messageCount"] == 0

    assert client.delete("/api/conversation/conv-api", params={"action": "delete"}).status_code == 200
    assert client.delete("/api/conversation/conv-api", params={"action": "delete"}).status_code == 404


def test_conversation_requires_message():
    response = client.post("/api/conversation", json={})
    assert response.status_code == 400
    assert response.json() == {"error": "Message is required"}


def test_conversation_stream(fake_llm):
    fake_llm.queue("streamed reply")

    response = client.post("/api/conversation/stream", json={"message": "hi", "conversationId": "conv-s"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.text.startswith('event: conversationId\ndata: {"conversationId": "conv-s"}\n\n')
    assert "event: token\n" in response.text
    assert "event: done\n" in response.text


def test_rag_upload_query_status(fake_llm, fake_rag):
    response = client.post(
        "/api/rag/upload",
        files=[
            ("files", ("geo.txt", b"paris is the capital of france", "text/plain")),
            ("files", ("photo.png", b"\x89PNG", "image/png")),
        ],
        data={"collectionName": "documents"},
    )
    assert response.status_code == 200
    assert response.json()["documentsUploaded"] == 1
    assert fake_rag.count() == 1

    fake_llm.queue("Paris.")
    answer = client.post("/api/rag/query", json={"query": "capital of france"}).json()
    assert answer["success"] is True
    assert answer["answer"] == "Paris."
    assert answer["retrievedDocuments"] == 1

    status = client.get("/api/rag/status").json()
    assert status["documentCount"] == 1
    assert status["message"] == "Vector store contains 1 document(s)"


def test_rag_upload_requires_files():
    assert client.post("/api/rag/upload", data={"collectionName": "x"}).json() == {"error": "No files provided"}


def test_rag_query_requires_query():
    assert client.post("/api/rag/query", json={}).status_code == 400


def test_workflow_crud():
    assert client.get("/api/workflows").json() == []

    saved = client.post("/api/workflows", json=WORKFLOW).json()
    assert saved["id"] == "wf-1"
    assert saved["createdAt"]

    renamed = dict(WORKFLOW, name="Renamed")
    client.post("/api/workflows", json=renamed)
    workflows = client.get("/api/workflows").json()
    assert [w["name"] for w in workflows] == ["Renamed"]

    assert client.get("/api/workflows/wf-1").json()["nodes"][1]["label"] == "Greet"
    assert client.get("/api/workflows/nope").status_code == 404

    assert client.delete("/api/workflows").status_code == 400
    assert client.delete("/api/workflows", params={"id": "wf-1"}).json() == {"success": True}
    assert client.get("/api/workflows").json() == []


def test_workflow_execute():
    response = client.post("/api/workflows/execute", json={"workflow": WORKFLOW, "triggerData": {"name": "Alice"}})

    assert response.status_code == 200
    execution = response.json()
    assert execution["status"] == "success"
    assert execution["logs"][-1]["output"] == {"output": "Hi Alice"}


def test_workflow_execute_requires_workflow():
    assert client.post("/api/workflows/execute", json={}).status_code == 400


def test_logs_endpoint():
    client.get("/")
    assert isinstance(client.get("/api/logs").json(), list)
