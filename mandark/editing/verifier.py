"""
Edit verifier — re-checks every proposed packet before it may touch disk.

Each packet first gets a structural check against the frozen document
(the file is known, the anchors land inside it).  If a client is
configured, a second model then reviews the packet against the original
lines and accepts, corrects or rejects it.  Model failures never block a
run: the packet passes through as accepted, with a warning.
"""

from __future__ import annotations

import logging
import re
import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Iterable, Iterator, Optional

from ..llm.base import LLMClient, LLMError
from .document import SourceDocument, format_line
from .errors import VerificationError
from .packets import EditPacket, Verdict, VerificationResult
from .stream_parser import parse_packets

logger = logging.getLogger(__name__)

# Tolerates inflected keywords (REJECTED) and markdown emphasis (**VERDICT:**)
_VERDICT_PATTERN = re.compile(
    r"^[ \t*_>#-]*VERDICT[ \t*_]*:[ \t*_]*(ACCEPT|REJECT|CORRECT)[A-Z]*[*_]*[ \t:.-]*(.*)$",
    re.IGNORECASE | re.MULTILINE,
)

_CONTEXT_LINES = 5


def check_anchors(document: SourceDocument, packet: EditPacket) -> Optional[str]:
    """Return why *packet* cannot be applied to *document*, or None if it can."""
    span = document.span_for_path(packet.file_path)
    if span is None:
        return f"{packet.file_path} is not part of the compiled document"
    if span.line_count == 0:
        return f"{packet.file_path} is empty and has no line anchors"
    for tag in (packet.start_line, packet.last_line):
        if not span.contains(tag):
            return (
                f"line {tag} is outside {span.path} "
                f"(lines {span.start_line}-{span.end_line})"
            )
    return None


class EditVerifier:
    """Classify packets as accepted, corrected or rejected.

    Parameters
    ----------
    document:
        The frozen document the packets were produced against.
    llm_client:
        Client for the secondary review.  ``None`` runs the structural
        check only.
    max_workers:
        Packets reviewed in parallel.  Results are always yielded in input
        order.
    """

    def __init__(
        self,
        document: SourceDocument,
        llm_client: Optional[LLMClient] = None,
        max_workers: int = 4,
    ) -> None:
        self._document = document
        self._client = llm_client
        self._max_workers = max(1, max_workers)
        self._lock = threading.Lock()
        self.accepted = 0
        self.corrected = 0
        self.rejected = 0
        self.verification_errors = 0
        self.errors: list[str] = []

    def verify(self, packets: Iterable[EditPacket]) -> Iterator[VerificationResult]:
        """Yield one result per packet, in the order packets arrive.

        Reviews are dispatched as packets arrive; finished results are
        released only once every earlier packet's result is out.
        """
        pending: deque[Future] = deque()
        with ThreadPoolExecutor(max_workers=self._max_workers,
                                thread_name_prefix="verify") as pool:
            for packet in packets:
                pending.append(pool.submit(self.verify_one, packet))
                while pending and pending[0].done():
                    yield self._count(pending.popleft().result())
            while pending:
                yield self._count(pending.popleft().result())

    def verify_one(self, packet: EditPacket) -> VerificationResult:
        """Verify a single packet (thread-safe)."""
        problem = check_anchors(self._document, packet)
        if problem:
            logger.warning("[Verify] Rejected %s: %s", packet.describe(), problem)
            return VerificationResult.rejected(packet, problem)

        if self._client is None:
            return VerificationResult.accepted(packet)

        try:
            return self._review(packet)
        except (LLMError, VerificationError) as exc:
            warning = f"verification unavailable for {packet.describe()}: {exc}"
            logger.warning("[Verify] %s; accepting as-is", warning)
            with self._lock:
                self.verification_errors += 1
                self.errors.append(warning)
            return VerificationResult.accepted(packet, warning=warning)

    # ------------------------------------------------------------------
    # Model review
    # ------------------------------------------------------------------

    def _review(self, packet: EditPacket) -> VerificationResult:
        from ..prompts import verify_prompt

        doc = self._document
        original = "\n".join(format_line(tag, text) for tag, text in doc.lines_for(packet))
        context = doc.excerpt(packet.start_line, packet.last_line, _CONTEXT_LINES)
        response = self._client.generate_response(
            verify_prompt(packet, original, context)
        )

        match = _VERDICT_PATTERN.search(response)
        if not match:
            raise VerificationError("no VERDICT line in verifier response")
        verdict = match.group(1).upper()
        reason = match.group(2).strip()

        if verdict == "ACCEPT":
            return VerificationResult.accepted(packet)

        if verdict == "REJECT":
            reason = reason or "rejected by verifier"
            logger.info("[Verify] Rejected %s: %s", packet.describe(), reason)
            return VerificationResult.rejected(packet, reason)

        fixes, _ = parse_packets(response[match.end():])
        if len(fixes) != 1:
            raise VerificationError(
                f"CORRECT verdict carried {len(fixes)} edit blocks, expected 1"
            )
        fixed = fixes[0]
        problem = check_anchors(doc, fixed)
        same_file = doc.span_for_path(fixed.file_path) == doc.span_for_path(packet.file_path)
        if problem is None and not same_file:
            problem = "correction targets a different file"
        if problem:
            reason = f"correction is unusable: {problem}"
            logger.warning("[Verify] Rejected %s: %s", packet.describe(), reason)
            return VerificationResult.rejected(packet, reason)

        logger.info("[Verify] Corrected %s -> %s", packet.describe(), fixed.describe())
        return VerificationResult.corrected(packet, fixed, reason)

    def _count(self, result: VerificationResult) -> VerificationResult:
        with self._lock:
            if result.verdict is Verdict.ACCEPTED:
                self.accepted += 1
            elif result.verdict is Verdict.CORRECTED:
                self.corrected += 1
            else:
                self.rejected += 1
        return result
