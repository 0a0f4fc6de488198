import pytest

from tests.fixtures.mock_clients import scripted_round, tool_call
from tests.helpers import assert_sse_event, parse_sse_events


@pytest.fixture
def stream_chat(configured_app):
    def send(**payload):
        payload.setdefault("model", "qwen3:1.7b")
        with configured_app.stream("POST", "/chat/stream", json=payload) as response:
            response.raise_for_status()
            return "".join(chunk for chunk in response.iter_text())
    return send


def test_failed_tool_is_retried_then_answered(stream_chat, ollama_client, configured_app):
    """
    Given a model whose first tool call fails, when the turn runs, then the error is fed back,
    the model retries, and the final answer follows the second tool output.
    """
    ollama_client.rounds = [
        scripted_round("Let me buzz it.", tool_calls=[tool_call("vibrate_device", pattern="morse")]),
        scripted_round("Trying again.", tool_calls=[tool_call("vibrate_device", pattern="double")]),
    ]

    body = stream_chat(prompt="Make my phone buzz twice", tools_enabled=True)

    event_types = [event_type for event_type, _ in parse_sse_events(body)]
    assert event_types.count("tool_call") == 2
    assert event_types.count("tool_output") == 2

    outputs = [data for event_type, data in parse_sse_events(body) if event_type == "tool_output"]
    assert [o["tool_result"]["success"] for o in outputs] == [False, True]
    assert outputs[0]["tool_result"]["output"].startswith("Error: Invalid arguments for vibrate_device:")
    assert outputs[1]["message"]["content"] == "[Tool Output]: Vibrated with a double pattern for 900 ms."
    assert all(o["message"]["role"] == "user" for o in outputs)

    assert assert_sse_event(body, "message")["message"]["content"] == "Trying again."
    assert_sse_event(body, "done", content="finalized")

    retry_messages = ollama_client.call_history[1]["messages"]
    assert retry_messages[-2] == {"role": "assistant", "content": "Let me buzz it."}
    assert retry_messages[-1]["content"].startswith("Tool 'vibrate_device' error:")

    stored = configured_app.get(f"/sessions/{outputs[0]['session_id']}").json()["messages"]
    kinds = [m["id"].rsplit("_", 1)[1] if "_" in m["id"] else m["role"] for m in stored]
    assert kinds == ["user", "call", "result", "call", "result", "assistant"]


def test_python_tool_call_is_rendered_as_code_block(stream_chat, ollama_client):
    ollama_client.rounds = [
        scripted_round("Calculating.", tool_calls=[tool_call("python_interpreter", code="print(2 ** 10)")]),
    ]

    body = stream_chat(prompt="What is 2 to the 10th?", tools_enabled=True)

    call = assert_sse_event(body, "tool_call")["message"]
    assert call["content"] == "**Tool Call:** `python_interpreter`\n```python\nprint(2 ** 10)\n```"
    output = assert_sse_event(body, "tool_output")
    assert output["message"]["content"] == "[Tool Output]: 1024"
    assert output["tool_result"] == {"success": True, "output": "1024"}
    assert len(ollama_client.call_history) == 1


def test_tools_not_offered_when_disabled(stream_chat, ollama_client):
    ollama_client.rounds = [scripted_round("Just text.")]

    stream_chat(prompt="Buzz please", tools_enabled=False)

    assert ollama_client.call_history[0]["tools"] is None
