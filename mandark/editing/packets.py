"""
Edit packet model — the shape every pipeline stage consumes and produces.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional


class Operation(str, enum.Enum):
    """Kinds of line-anchored edits a model may propose."""
    REPLACE_LINES = "replaceLines"
    INSERT_AFTER_LINE = "insertAfterLine"
    DELETE_LINES = "deleteLines"

    @classmethod
    def parse(cls, keyword: str) -> "Operation":
        """Map an operation keyword (or short alias) to an Operation.

        Raises ``ValueError`` for unknown keywords.
        """
        key = keyword.strip().lower()
        for op in cls:
            if op.value.lower() == key:
                return op
        alias = _ALIASES.get(key)
        if alias is None:
            raise ValueError(f"Unknown operation: {keyword!r}")
        return alias


_ALIASES = {
    "replace": Operation.REPLACE_LINES,
    "insert": Operation.INSERT_AFTER_LINE,
    "insert_after": Operation.INSERT_AFTER_LINE,
    "delete": Operation.DELETE_LINES,
}


@dataclass(frozen=True)
class EditPacket:
    """One atomic, anchored file mutation.

    ``start_line`` and ``end_line`` are line tags from the compiled
    document, not file-local line numbers.  ``end_line`` is ``None`` for
    insertions.
    """
    file_path: str
    operation: Operation
    start_line: int
    end_line: Optional[int] = None
    new_content: tuple[str, ...] = ()
    rationale: str = ""

    def __post_init__(self) -> None:
        if not self.file_path:
            raise ValueError("EditPacket requires a file path")
        if self.start_line < 1:
            raise ValueError(f"Invalid start line {self.start_line}")
        if self.operation is Operation.INSERT_AFTER_LINE:
            if self.end_line is not None:
                raise ValueError("insertAfterLine takes a single anchor")
        else:
            if self.end_line is None:
                raise ValueError(f"{self.operation.value} requires an end line")
            if self.start_line > self.end_line:
                raise ValueError(
                    f"Start line {self.start_line} is after end line {self.end_line}"
                )
        if self.operation is Operation.DELETE_LINES and self.new_content:
            raise ValueError("deleteLines carries no content")
        # Accept any sequence but store an immutable tuple
        object.__setattr__(self, "new_content", tuple(self.new_content))

    @property
    def last_line(self) -> int:
        """Highest tag the packet touches."""
        return self.end_line if self.end_line is not None else self.start_line

    def describe(self) -> str:
        if self.operation is Operation.INSERT_AFTER_LINE:
            where = f"after line {self.start_line}"
        else:
            where = f"lines {self.start_line}-{self.end_line}"
        return f"{self.operation.value} {self.file_path} {where}"


class Verdict(str, enum.Enum):
    ACCEPTED = "accepted"
    CORRECTED = "corrected"
    REJECTED = "rejected"


@dataclass(frozen=True)
class VerificationResult:
    """Verdict for one packet, produced in the same order as the input."""
    verdict: Verdict
    packet: EditPacket
    corrected_packet: Optional[EditPacket] = None
    reason: str = ""
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def accepted(cls, packet: EditPacket, warning: str = "") -> "VerificationResult":
        return cls(Verdict.ACCEPTED, packet,
                   warnings=(warning,) if warning else ())

    @classmethod
    def corrected(cls, packet: EditPacket, fixed: EditPacket,
                  reason: str = "") -> "VerificationResult":
        return cls(Verdict.CORRECTED, packet, corrected_packet=fixed, reason=reason)

    @classmethod
    def rejected(cls, packet: EditPacket, reason: str) -> "VerificationResult":
        return cls(Verdict.REJECTED, packet, reason=reason)

    @property
    def effective_packet(self) -> Optional[EditPacket]:
        """The packet the applier should use, or None if rejected."""
        if self.verdict is Verdict.REJECTED:
            return None
        if self.verdict is Verdict.CORRECTED:
            return self.corrected_packet
        return self.packet
