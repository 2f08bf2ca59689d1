"""
Edit applier — writes verified packets to disk.

Anchors are resolved once, against the frozen document, into file-local
slices.  Each file's edits are then applied bottom-up (descending start
position) so no edit shifts the lines another pending edit points at.
Every file is snapshotted into the history store before its first write.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from .document import SourceDocument, FileSpan, safe_write, split_source_lines
from .errors import ApplyError
from .history import HistoryStore
from .packets import EditPacket, Operation, VerificationResult
from .verifier import check_anchors

logger = logging.getLogger(__name__)

# Per-packet status passed to the progress callback
APPLIED = "applied"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass
class ApplyResult:
    """Summary of one apply run."""
    applied: int = 0
    skipped: int = 0
    failed: int = 0
    files_modified: list[str] = field(default_factory=list)
    failed_files: dict[str, str] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    @property
    def partial_failure(self) -> bool:
        """True when at least one file could not be written."""
        return bool(self.failed_files)

    @property
    def success(self) -> bool:
        return self.failed == 0


@dataclass
class ResolvedEdit:
    """A packet pinned to a slice of one file's original lines."""
    packet: EditPacket
    order: int
    start: int      # 0-based slice start
    end: int        # 0-based slice end (exclusive); == start for insertions

    @property
    def sort_key(self) -> tuple[int, int]:
        # An insertion at slice index i lands before a range starting at i,
        # so the range must be applied first.  Later packets go first on
        # ties so same-anchor insertions end up in emission order.
        if self.start == self.end:
            return (2 * self.start, self.order)
        return (2 * self.start + 1, self.order)

    def overlaps(self, other: "ResolvedEdit") -> bool:
        a_insert = self.start == self.end
        b_insert = other.start == other.end
        if a_insert and b_insert:
            return False
        if a_insert:
            return other.start < self.start < other.end
        if b_insert:
            return self.start < other.start < self.end
        return self.start < other.end and other.start < self.end


def resolve_edit(document: SourceDocument, packet: EditPacket,
                 order: int) -> tuple[FileSpan, ResolvedEdit]:
    """Pin *packet* to its file.  Raises ``ValueError`` if it does not fit."""
    problem = check_anchors(document, packet)
    if problem:
        raise ValueError(problem)
    span = document.span_for_path(packet.file_path)
    local_start = packet.start_line - span.start_line      # 0-based
    if packet.operation is Operation.INSERT_AFTER_LINE:
        pos = local_start + 1
        return span, ResolvedEdit(packet, order, pos, pos)
    local_end = packet.end_line - span.start_line + 1       # exclusive
    return span, ResolvedEdit(packet, order, local_start, local_end)


def apply_edits_to_lines(lines: list[str], edits: Iterable[ResolvedEdit]) -> list[str]:
    """Apply *edits* bottom-up to a copy of *lines*."""
    result = list(lines)
    for edit in sorted(edits, key=lambda e: e.sort_key, reverse=True):
        result[edit.start:edit.end] = list(edit.packet.new_content)
    return result


def _line_ending(text: str) -> str:
    if "\r\n" in text:
        return "\r\n"
    if "\r" in text and "\n" not in text:
        return "\r"
    return "\n"


def render_lines(lines: list[str], original: str) -> str:
    """Join *lines* using *original*'s line ending and trailing-newline state."""
    if not lines:
        return ""
    eol = _line_ending(original)
    text = eol.join(lines)
    if original.endswith(("\n", "\r")):
        text += eol
    return text


class EditApplier:
    """Apply verified packets to the files of a compiled document.

    Parameters
    ----------
    document:
        The frozen document all packet anchors refer to.
    history:
        Store that receives each file's original text before the file is
        first written.
    on_progress:
        Optional ``callback(packet, status, detail)`` invoked once per
        packet with ``"applied"``, ``"skipped"`` or ``"failed"``.
    """

    def __init__(
        self,
        document: SourceDocument,
        history: HistoryStore,
        on_progress: Optional[Callable[[EditPacket, str, str], None]] = None,
    ) -> None:
        self._document = document
        self._history = history
        self._on_progress = on_progress

    def apply(self, results: Iterable[VerificationResult]) -> ApplyResult:
        """Apply every accepted or corrected packet in *results*."""
        result = ApplyResult()
        by_file: dict[str, tuple[FileSpan, list[ResolvedEdit]]] = {}

        for order, verification in enumerate(results):
            packet = verification.effective_packet
            if packet is None:
                self._report(result, verification.packet, SKIPPED,
                             verification.reason or "rejected")
                continue
            try:
                span, edit = resolve_edit(self._document, packet, order)
            except ValueError as exc:
                self._report(result, packet, SKIPPED, str(exc))
                continue

            _, edits = by_file.setdefault(span.abs_path, (span, []))
            clash = next((e for e in edits if e.overlaps(edit)), None)
            if clash is not None:
                self._report(result, packet, SKIPPED,
                             f"overlaps earlier edit ({clash.packet.describe()})")
                continue
            edits.append(edit)

        try:
            for span, edits in by_file.values():
                self._apply_file(span, edits, result)
        finally:
            if self._history.in_run:
                self._history.commit_run()

        logger.info(
            "[Apply] %d applied, %d skipped, %d failed across %d files",
            result.applied, result.skipped, result.failed, len(result.files_modified),
        )
        return result

    def _apply_file(self, span: FileSpan, edits: list[ResolvedEdit],
                    result: ApplyResult) -> None:
        path = span.abs_path
        try:
            with open(path, "rb") as f:
                original = f.read().decode("utf-8")
            lines = split_source_lines(original)
            if len(lines) != span.line_count:
                raise ApplyError(
                    span.path,
                    f"file has {len(lines)} lines, expected {span.line_count}; "
                    "it changed since it was compiled",
                )

            if not self._history.in_run:
                self._history.begin_run()
            self._history.record_file(path, original)

            new_text = render_lines(apply_edits_to_lines(lines, edits), original)
            safe_write(path, new_text.encode("utf-8"))
        except (OSError, UnicodeDecodeError, ApplyError) as exc:
            message = str(exc) if isinstance(exc, ApplyError) else f"{span.path}: {exc}"
            logger.error("[Apply] Failed to write %s", message)
            result.failed_files[span.path] = message
            for edit in edits:
                self._report(result, edit.packet, FAILED, message)
            return

        result.files_modified.append(span.path)
        for edit in sorted(edits, key=lambda e: e.order):
            self._report(result, edit.packet, APPLIED, "")

    def _report(self, result: ApplyResult, packet: EditPacket,
                status: str, detail: str) -> None:
        if status == APPLIED:
            result.applied += 1
        elif status == SKIPPED:
            result.skipped += 1
            result.errors.append(f"skipped {packet.describe()}: {detail}")
            logger.warning("[Apply] Skipped %s: %s", packet.describe(), detail)
        else:
            result.failed += 1
            result.errors.append(f"failed {packet.describe()}: {detail}")
        if self._on_progress:
            self._on_progress(packet, status, detail)
