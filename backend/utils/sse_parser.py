"""
Client-side reader for the data chat stream.

Consumes `data:` lines of chat-completion chunks and yields the text deltas.
Network reads can split a JSON payload across lines; such fragments are kept
and retried with the next line unless that line starts a new event.
"""

import json
from typing import Iterable, Iterator, Optional

DONE = "[DONE]"
DATA_PREFIX = "data: "


def _delta_content(payload: dict) -> Optional[str]:
    choices = payload.get("choices") or []
    if not choices:
        return None
    return (choices[0].get("delta") or {}).get("content")


def parse_sse_stream(lines: Iterable[str]) -> Iterator[str]:
    """
    Yield delta contents from SSE lines until `data: [DONE]`.

    Comment lines (starting with ':') and blank lines are skipped, as is
    anything that is not a `data: ` line.

    Example:
        >>> list(parse_sse_stream(['data: {"choices":[{"delta":{"content":"Hi"}}]}', 'data: [DONE]']))
        ['Hi']
    """
    pending = ""
    for raw in lines:
        line = raw.rstrip("\r\n")
        if pending and not line.startswith(DATA_PREFIX):
            line = pending + line
        # A new data line abandons any fragment that never completed
        pending = ""

        if not line.strip() or line.startswith(":"):
            continue
        if not line.startswith(DATA_PREFIX):
            continue

        data = line[len(DATA_PREFIX):].strip()
        if data == DONE:
            return

        try:
            payload = json.loads(data)
        except ValueError:
            # Incomplete JSON: put the line back and wait for more
            pending = line
            continue

        content = _delta_content(payload) if isinstance(payload, dict) else None
        if content:
            yield content
