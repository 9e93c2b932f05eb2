import logging

import pytest

from agentflow import callbacks as cb
from agentflow.engine import WorkflowExecutor
from agentflow.node_registry import registry
from agentflow.nodes.control_flow import compare
from agentflow.schemas import Edge, ExecutionStatus, Workflow, WorkflowNode

CALCULATE = 'USE_TOOL: calculator\nPARAMETERS: {"expression": "6*7"}'


def node(node_id, node_type, label=None, **config):
    return WorkflowNode(id=node_id, type=node_type, label=label or node_id, config=config)


def edge(source, target, handle=None):
    return Edge(id=f"{source}-{target}", source=source, target=target, sourceHandle=handle)


def run(runtime, nodes, edges, trigger_data=None, events=None):
    workflow = Workflow(id="wf-test", name="Test", nodes=nodes, edges=edges)
    executor = WorkflowExecutor(
        workflow,
        trigger_data=trigger_data,
        runtime=runtime,
        event_callback=events.append if events is not None else None,
    )
    return executor, executor.execute()


def executed(execution):
    return [log.nodeId for log in execution.logs]


def test_trigger_to_llm_formats_prompt(runtime, fake_llm, caplog):
    fake_llm.queue("Cats are wonderful.")
    nodes = [node("start", "trigger"), node("llm-1", "llm", label="Write Story", prompt="Write about {{trigger.topic}}")]

    with caplog.at_level(logging.INFO):
        executor, execution = run(runtime, nodes, [edge("start", "llm-1")], trigger_data={"topic": "cats"})

    assert execution.status == ExecutionStatus.SUCCESS
    assert fake_llm.calls[0] == [{"role": "user", "content": "Write about cats"}]
    assert "Write about cats" in caplog.text
    context = executor.get_context()
    assert context["llm-1"]["output"] == "Cats are wonderful."
    assert context["write_story"] is context["llm-1"]
    assert execution.logs[1].input["prompt"] == "Write about cats"


def test_condition_follows_only_true_edges(runtime):
    nodes = [
        node("start", "trigger"),
        node("check", "condition", leftValue="{{trigger.score}}", operator=">", rightValue="70"),
        node("pass", "transform", template="passed with {{trigger.score}}"),
        node("fail", "transform", template="failed"),
    ]
    edges = [edge("start", "check"), edge("check", "pass", "true"), edge("check", "fail", "out-false")]

    executor, execution = run(runtime, nodes, edges, trigger_data={"score": 85})

    assert execution.status == ExecutionStatus.SUCCESS
    assert executed(execution) == ["start", "check", "pass"]
    assert execution.logs[1].output["result"] is True
    assert executor.get_context()["pass"] == {"output": "passed with 85"}


def test_condition_false_branch(runtime):
    nodes = [
        node("start", "trigger"),
        node("check", "condition", leftValue="{{trigger.score}}", operator=">", rightValue="70"),
        node("pass", "transform", template="passed"),
        node("fail", "transform", template="failed"),
    ]
    edges = [edge("start", "check"), edge("check", "pass", "out-true"), edge("check", "fail", "out-false")]

    _, execution = run(runtime, nodes, edges, trigger_data={"score": 12})

    assert executed(execution) == ["start", "check", "fail"]


def test_back_edge_is_skipped(runtime):
    nodes = [node("start", "trigger"), node("a", "transform", template="A"), node("b", "transform", template="B")]
    edges = [edge("start", "a"), edge("a", "b"), edge("b", "a")]

    _, execution = run(runtime, nodes, edges)

    assert execution.status == ExecutionStatus.SUCCESS
    assert executed(execution) == ["start", "a", "b"]


def test_branches_run_independently(runtime):
    nodes = [
        node("start", "trigger"),
        node("left", "transform", template="L"),
        node("right", "transform", template="R"),
        node("join", "transform", template="J"),
    ]
    edges = [edge("start", "left"), edge("start", "right"), edge("left", "join"), edge("right", "join")]

    _, execution = run(runtime, nodes, edges)

    # Each branch has its own visited set, so the join runs once per path
    assert executed(execution) == ["start", "left", "join", "right", "join"]


def test_no_trigger(runtime):
    _, execution = run(runtime, [node("a", "transform", template="x")], [])

    assert execution.status == ExecutionStatus.ERROR
    assert execution.error == "No trigger node found in workflow"
    assert execution.logs == []


def test_unknown_node_type_uses_placeholder(runtime):
    nodes = [node("start", "trigger"), node("mail", "gmail_send", to="x@example.com")]

    executor, execution = run(runtime, nodes, [edge("start", "mail")])

    assert execution.status == ExecutionStatus.SUCCESS
    assert executor.get_context()["mail"] == {"message": "Node type gmail_send not yet implemented"}


def test_failing_node_aborts_and_keeps_logs(runtime):
    nodes = [
        node("start", "trigger"),
        node("parse", "transform", template="not json", parseJson=True),
        node("after", "transform", template="never"),
    ]

    _, execution = run(runtime, nodes, [edge("start", "parse"), edge("parse", "after")])

    assert execution.status == ExecutionStatus.ERROR
    assert executed(execution) == ["start", "parse"]
    assert execution.logs[0].status == ExecutionStatus.SUCCESS
    assert execution.logs[1].status == ExecutionStatus.ERROR
    assert execution.logs[1].error
    assert execution.error == execution.logs[1].error


def test_events_are_emitted(runtime):
    events = []
    nodes = [node("start", "trigger"), node("t", "transform", template="x")]

    run(runtime, nodes, [edge("start", "t")], events=events)

    types = [e["type"] for e in events]
    assert types[0] == cb.WORKFLOW_START
    assert types[-1] == cb.WORKFLOW_END
    assert types.count(cb.NODE_START) == 2
    assert types.count(cb.NODE_END) == 2
    assert events[-1]["status"] == "success"


def test_trigger_config_data_and_llm_overrides(runtime, fake_llm):
    nodes = [
        node("start", "trigger", triggerData='{"topic": "dogs"}', llmModel="workflow-model", llmBaseUrl="http://local:1234/v1"),
        node("llm-1", "llm", prompt="Write about {{trigger.topic}}"),
    ]

    _, execution = run(runtime, nodes, [edge("start", "llm-1")])

    assert execution.status == ExecutionStatus.SUCCESS
    assert fake_llm.prompts == ["Write about dogs"]
    assert fake_llm.models[0].model == "workflow-model"
    assert fake_llm.models[0].api_base == "http://local:1234/v1"


def test_trigger_default_payload(runtime):
    executor, _ = run(runtime, [node("start", "trigger")], [])
    assert executor.get_context()["trigger"] == {"message": "Workflow started"}


def test_empty_execution_trigger_data_wins_over_config(runtime):
    nodes = [node("start", "trigger", triggerData={"from": "config"})]

    executor, execution = run(runtime, nodes, [], trigger_data={})

    assert execution.status == ExecutionStatus.SUCCESS
    assert executor.get_context()["trigger"] == {}
    assert execution.logs[0].output == {}


def test_tool_node(runtime):
    nodes = [node("start", "trigger"), node("calc", "tool", toolName="calculator", parameters={"expression": "{{trigger.n}} * 2"})]

    executor, execution = run(runtime, nodes, [edge("start", "calc")], trigger_data={"n": 21})

    assert execution.status == ExecutionStatus.SUCCESS
    assert executor.get_context()["calc"]["result"]["result"] == 42


def test_agent_node_with_tools(runtime, fake_llm):
    fake_llm.queue(CALCULATE, "FINAL_ANSWER: 42")
    nodes = [
        node("start", "trigger"),
        node("agent", "agent", label="Math Agent", prompt="What is {{trigger.question}}?", tools=["calculator"]),
        node("report", "transform", template="Answer: {{math_agent.output}}"),
    ]

    executor, execution = run(
        runtime, nodes, [edge("start", "agent"), edge("agent", "report")], trigger_data={"question": "6*7"}
    )

    assert execution.status == ExecutionStatus.SUCCESS
    assert executor.get_context()["report"] == {"output": "Answer: 42"}
    assert executor.get_context()["agent"]["toolCalls"][0]["toolName"] == "calculator"


def test_failed_agent_fails_node(runtime, fake_llm):
    fake_llm.default = CALCULATE
    nodes = [node("start", "trigger"), node("agent", "agent", prompt="loop", tools=["calculator"])]

    _, execution = run(runtime, nodes, [edge("start", "agent")])

    assert execution.status == ExecutionStatus.ERROR
    assert execution.logs[-1].error == "Max iterations reached"


def test_editor_node_format():
    raw = {
        "id": "n1",
        "type": "custom",
        "position": {"x": 10, "y": 20},
        "data": {"label": "Start", "type": "trigger", "config": {"triggerData": "{}"}},
    }
    parsed = WorkflowNode.model_validate(raw)
    assert parsed.type == "trigger"
    assert parsed.label == "Start"
    assert parsed.config == {"triggerData": "{}"}


def test_node_metadata():
    types = {schema.type for schema in registry.get_all_metadata()}
    assert types == {
        "trigger", "agent", "llm", "llm_chain", "sequential_chain", "router_chain",
        "multi_agent", "condition", "tool", "transform",
    }


@pytest.mark.parametrize(
    "left, operator, right, expected",
    [
        ("abc", "==", "abc", True),
        ("abc", "==", "abd", False),
        ("abc", "!=", "abd", True),
        ("5", "!=", "5", False),
        ("85", ">", "70", True),
        ("3", "<", "10", True),
        ("10", "<", "3", False),
        ("2.5", ">", "2", True),
        ("high", ">", "70", False),
        ("85", "<", "lots", False),
        ("hello world", "contains", "world", True),
        ("hello world", "contains", "moon", False),
        ("a", "matches", "a", False),
    ],
)
def test_compare(left, operator, right, expected):
    assert compare(left, operator, right) is expected
