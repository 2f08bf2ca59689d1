"""
Packet stream parser — turns an incrementally streamed model response
into complete edit packets as soon as each one is terminated.

Wire format of one packet::

    @@EDIT_START@@
    FILE: src/app.py
    OPERATION: replaceLines
    LINES: 12-14
    RATIONALE: optional, free text
    =======
    replacement line 1
    replacement line 2
    @@EDIT_END@@

``insertAfterLine`` takes a single tag (``LINES: 12``).  Only
``deleteLines`` may omit the ``=======`` separator; any other record
without one is malformed.  Anything outside a record is ignored.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Iterator, Optional

from .errors import StreamParseError
from .packets import EditPacket, Operation

logger = logging.getLogger(__name__)

# Markers
EDIT_START = "@@EDIT_START@@"
EDIT_END = "@@EDIT_END@@"
SEPARATOR = "======="

_HEADER_PATTERN = re.compile(r"^\s*([A-Za-z_]+)\s*:\s*(.*?)\s*$")
_RANGE_PATTERN = re.compile(r"^(\d+)\s*(?:-\s*(\d+))?$")


class _Record:
    """Fields of the record currently being read."""

    def __init__(self) -> None:
        self.headers: dict[str, str] = {}
        self.content: list[str] = []
        self.in_content = False


class PacketStreamParser:
    """Incremental, resumable parser for streamed edit packets.

    Feed it fragments of any size with :meth:`feed`; it returns the
    packets completed by that fragment.  Call :meth:`close` once the
    stream ends.  Malformed records are skipped and counted, never raised.
    """

    def __init__(self) -> None:
        self._pending = ""
        self._record: Optional[_Record] = None
        self._closed = False
        self.packets_emitted = 0
        self.malformed_count = 0
        self.errors: list[str] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def feed(self, fragment: str) -> list[EditPacket]:
        """Consume *fragment* and return any packets it completed."""
        if self._closed:
            raise RuntimeError("feed() called after close()")
        if not fragment:
            return []
        self._pending += fragment
        packets: list[EditPacket] = []

        # Only whole lines are processed; the tail waits for more data.
        *complete, self._pending = self._pending.split("\n")
        for line in complete:
            packet = self._consume_line(line.rstrip("\r"))
            if packet is not None:
                packets.append(packet)
        return packets

    def close(self) -> list[EditPacket]:
        """Flush the trailing partial line and finish the stream."""
        if self._closed:
            return []
        self._closed = True
        packets: list[EditPacket] = []
        if self._pending:
            packet = self._consume_line(self._pending.rstrip("\r"))
            self._pending = ""
            if packet is not None:
                packets.append(packet)
        if self._record is not None:
            self._reject("record not terminated before end of stream")
            self._record = None
        if self.malformed_count:
            logger.warning(
                "[Stream] %d malformed edit records skipped", self.malformed_count
            )
        return packets

    # ------------------------------------------------------------------
    # Line state machine
    # ------------------------------------------------------------------

    def _consume_line(self, line: str) -> Optional[EditPacket]:
        marker = line.strip()
        record = self._record

        if record is None:
            if marker == EDIT_START:
                self._record = _Record()
            return None

        if marker == EDIT_END:
            self._record = None
            return self._finish(record)

        if marker == EDIT_START:
            self._reject("new record started before the previous one ended")
            self._record = _Record()
            return None

        if record.in_content:
            record.content.append(line)
            return None

        if marker == SEPARATOR:
            record.in_content = True
            return None

        match = _HEADER_PATTERN.match(line)
        if match:
            record.headers[match.group(1).upper()] = match.group(2)
        elif marker:
            logger.debug("[Stream] Ignoring stray header line: %r", line)
        return None

    def _finish(self, record: _Record) -> Optional[EditPacket]:
        try:
            packet = self._build_packet(record)
        except StreamParseError as exc:
            self._reject(str(exc))
            return None
        self.packets_emitted += 1
        logger.debug("[Stream] Packet %d: %s", self.packets_emitted, packet.describe())
        return packet

    def _reject(self, reason: str) -> None:
        self.malformed_count += 1
        self.errors.append(reason)
        logger.warning("[Stream] Skipping malformed edit record: %s", reason)

    @staticmethod
    def _build_packet(record: _Record) -> EditPacket:
        headers = record.headers
        file_path = headers.get("FILE", "").strip().strip("`\"'")
        if not file_path:
            raise StreamParseError("missing FILE header")

        keyword = headers.get("OPERATION", "")
        try:
            operation = Operation.parse(keyword)
        except ValueError as exc:
            raise StreamParseError(str(exc)) from None

        anchor = headers.get("LINES", "")
        match = _RANGE_PATTERN.match(anchor.strip())
        if not match:
            raise StreamParseError(f"unparseable line anchor {anchor!r}")
        start = int(match.group(1))
        end = int(match.group(2)) if match.group(2) else None

        if operation is Operation.INSERT_AFTER_LINE:
            if end is not None and end != start:
                raise StreamParseError(
                    f"insertAfterLine takes one line, got {anchor!r}"
                )
            end = None
        elif end is None:
            # A single tag means a one-line range
            end = start

        if operation is not Operation.DELETE_LINES and not record.in_content:
            raise StreamParseError(
                f"{operation.value} record is missing the {SEPARATOR} content separator"
            )

        content = () if operation is Operation.DELETE_LINES else tuple(record.content)
        try:
            return EditPacket(
                file_path=file_path,
                operation=operation,
                start_line=start,
                end_line=end,
                new_content=content,
                rationale=headers.get("RATIONALE", ""),
            )
        except ValueError as exc:
            raise StreamParseError(str(exc)) from None


def normalize_stream(
    fragments: Iterable[str],
    parser: Optional[PacketStreamParser] = None,
) -> Iterator[EditPacket]:
    """Yield packets from a fragment stream as soon as each is complete.

    Pass your own *parser* to read its counters once the stream is done.
    """
    parser = parser or PacketStreamParser()
    for fragment in fragments:
        yield from parser.feed(fragment)
    yield from parser.close()


def parse_packets(text: str) -> tuple[list[EditPacket], PacketStreamParser]:
    """Parse a complete response in one go."""
    parser = PacketStreamParser()
    packets = parser.feed(text)
    packets.extend(parser.close())
    return packets, parser


def format_packet(packet: EditPacket) -> str:
    """Render *packet* in the wire format (used in prompts and tests)."""
    if packet.operation is Operation.INSERT_AFTER_LINE:
        lines = str(packet.start_line)
    else:
        lines = f"{packet.start_line}-{packet.end_line}"
    out = [
        EDIT_START,
        f"FILE: {packet.file_path}",
        f"OPERATION: {packet.operation.value}",
        f"LINES: {lines}",
    ]
    if packet.rationale:
        out.append(f"RATIONALE: {packet.rationale}")
    out.append(SEPARATOR)
    out.extend(packet.new_content)
    out.append(EDIT_END)
    return "\n".join(out)
