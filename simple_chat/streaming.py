"""
Stream normalizer.

Turns a raw byte stream from a provider into parsed JSON events,
independent of how the provider frames its records:

- SSE: records separated by a blank line, payload carried in
  ``data:`` lines, terminated by ``data: [DONE]``
- NDJSON: one JSON document per line (``event:``/``data:`` prefixes
  are tolerated so SSE-shaped lines decode the same way)

Records split across reads are buffered until their terminator
arrives. A malformed record is logged and skipped; the rest of the
stream is still delivered.
"""

import codecs
import json
import logging
from enum import Enum
from typing import Any, AsyncIterator, Dict, Optional

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"

# Returned by _parse_record for the end-of-stream sentinel
_END = object()

_IGNORED_FIELDS = ("event:", "id:", "retry:")


class Framing(str, Enum):
    """Record framing used by a provider's streaming endpoint."""
    SSE = "sse"
    NDJSON = "ndjson"

    @property
    def terminator(self) -> str:
        return "\n\n" if self is Framing.SSE else "\n"


async def iter_json_events(
    source: AsyncIterator[bytes],
    framing: Framing,
) -> AsyncIterator[Dict[str, Any]]:
    """
    Yield JSON objects decoded from a byte stream.

    The source is closed on every exit path: normal end, sentinel,
    error, or the consumer closing this generator early.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    terminator = framing.terminator
    buffer = ""

    try:
        async for raw in source:
            buffer += decoder.decode(raw)
            buffer = buffer.replace("\r\n", "\n")

            while True:
                end = buffer.find(terminator)
                if end < 0:
                    break

                record = buffer[:end]
                buffer = buffer[end + len(terminator):]

                event = _parse_record(record)
                if event is _END:
                    return
                if event is not None:
                    yield event

        # Trailing record without terminator
        buffer += decoder.decode(b"", final=True)
        if buffer.strip():
            event = _parse_record(buffer)
            if event is not None and event is not _END:
                yield event

    finally:
        aclose = getattr(source, "aclose", None)
        if aclose is not None:
            await aclose()


def _parse_record(record: str) -> Optional[Any]:
    """Decode one framed record. Returns None for records to skip."""
    data_lines = []

    for line in record.split("\n"):
        line = line.rstrip("\r")
        if not line.strip() or line.startswith(":"):
            continue
        if line.startswith(_IGNORED_FIELDS):
            continue
        if line.startswith("data:"):
            value = line[5:]
            data_lines.append(value[1:] if value.startswith(" ") else value)
        else:
            data_lines.append(line)

    payload = "\n".join(data_lines).strip()
    if not payload:
        return None
    if payload == DONE_SENTINEL:
        return _END

    try:
        event = json.loads(payload)
    except json.JSONDecodeError:
        logger.warning(f"Failed to parse stream record: {payload[:100]}")
        return None

    if not isinstance(event, dict):
        logger.warning(f"Ignoring non-object stream record: {payload[:100]}")
        return None

    return event
