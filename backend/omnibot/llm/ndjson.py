"""Buffered reader for newline-delimited JSON over a chunked byte stream.

A network read can end anywhere, including in the middle of a record or in
the middle of a multi-byte UTF-8 sequence.  Bytes are accumulated, split on
``\\n``, and only complete lines are parsed; the trailing fragment waits for
the next read.
"""

import json
import logging
from typing import Any, Iterator

logger = logging.getLogger(__name__)


class NDJSONLineBuffer:
    """Incremental NDJSON decoder.

    Usage::

        buffer = NDJSONLineBuffer()
        async for chunk in response.aiter_bytes():
            for record in buffer.feed(chunk):
                ...
        for record in buffer.flush():
            ...
    """

    def __init__(self) -> None:
        self._pending = b""
        self.skipped = 0

    @property
    def pending(self) -> bytes:
        """Bytes of the incomplete trailing line, if any."""
        return self._pending

    def feed(self, chunk: bytes) -> Iterator[dict[str, Any]]:
        """Add ``chunk`` and yield every record completed by it."""
        if not chunk:
            return
        self._pending += chunk
        while b"\n" in self._pending:
            line, self._pending = self._pending.split(b"\n", 1)
            record = self._parse(line)
            if record is not None:
                yield record

    def flush(self) -> Iterator[dict[str, Any]]:
        """Parse whatever remains once the stream has closed."""
        line, self._pending = self._pending, b""
        record = self._parse(line)
        if record is not None:
            yield record

    def _parse(self, line: bytes) -> dict[str, Any] | None:
        line = line.strip()
        if not line:
            return None
        try:
            record = json.loads(line.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            self.skipped += 1
            logger.debug("Skipping malformed stream line (%s): %r", exc, line[:200])
            return None
        if not isinstance(record, dict):
            self.skipped += 1
            logger.debug("Skipping non-object stream record: %r", record)
            return None
        return record
