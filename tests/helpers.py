import re
import json

SSE_EVENT = re.compile(r'event: (\w+)\ndata: (.*?)\n\n', re.DOTALL)


def parse_sse_events(body):
    """Split an SSE body into (event_type, data) pairs in order."""
    return [(match.group(1), json.loads(match.group(2))) for match in SSE_EVENT.finditer(body)]


def assert_sse_event(body, event_type, **expected_data):
    """
    Assert that an SSE event with the given type and expected data exists in the body.
    Checks all occurrences of the event type.
    """
    for found_type, data in parse_sse_events(body):
        if found_type != event_type:
            continue
        if all(key in data and data[key] == value for key, value in expected_data.items()):
            return data

    assert False, f"No '{event_type}' event found with all expected data: {expected_data} in SSE body:\n{body}"


def streamed_text(body):
    """Concatenation of all token events."""
    return "".join(data["content"] for event_type, data in parse_sse_events(body) if event_type == "token")


async def collect(async_iterable):
    return [item async for item in async_iterable]


def actions(events):
    return [event.action for event in events]
