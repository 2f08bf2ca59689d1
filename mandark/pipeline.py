"""
Pipeline driver — streams a model response through normalizer, verifier
and applier, and collects every counter into one summary.

Example usage::

    from mandark import compile_document, run_edit_pipeline, HistoryStore

    compiled = compile_document(["src/"])
    fragments = client.iter_fragments(task_prompt(compiled.document.text, task))
    summary = run_edit_pipeline(compiled.document, fragments,
                                history=HistoryStore())
    print(summary.applied, summary.failed)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, Optional

from .editing.document import SourceDocument
from .editing.edit_applier import ApplyResult, EditApplier
from .editing.history import HistoryStore
from .editing.packets import EditPacket
from .editing.stream_parser import PacketStreamParser, normalize_stream
from .editing.verifier import EditVerifier
from .llm.base import LLMClient, LLMError

_logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    """Counters for one pipeline run."""
    packets: int = 0
    malformed: int = 0
    accepted: int = 0
    corrected: int = 0
    rejected: int = 0
    verification_errors: int = 0
    applied: int = 0
    skipped: int = 0
    failed: int = 0
    files_modified: list[str] = field(default_factory=list)
    failed_files: dict[str, str] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    stream_error: str = ""

    @property
    def partial_failure(self) -> bool:
        return bool(self.failed_files)

    @property
    def recovered_errors(self) -> int:
        """Problems the run survived: bad records, unverifiable or unusable packets."""
        return self.malformed + self.verification_errors + self.skipped


def _until_failure(fragments: Iterable[str], errors: list[str]) -> Iterator[str]:
    """Pass fragments through; a provider failure ends the stream early.

    Packets completed before the failure are still verified and applied.
    """
    try:
        yield from fragments
    except LLMError as exc:
        _logger.error("[Pipeline] Response stream ended early: %s", exc)
        errors.append(str(exc))


def run_edit_pipeline(
    document: SourceDocument,
    fragments: Iterable[str],
    history: HistoryStore,
    verifier_client: Optional[LLMClient] = None,
    verify_workers: int = 4,
    on_progress: Optional[Callable[[EditPacket, str, str], None]] = None,
) -> RunSummary:
    """Normalize, verify and apply the edits in *fragments*.

    Parameters
    ----------
    document:
        The compiled document the model was shown.
    fragments:
        Raw text fragments of the model response, in arrival order.
    history:
        Store that captures originals so the run can be reverted.
    verifier_client:
        Client for the secondary review; ``None`` keeps the structural
        anchor check only.
    verify_workers:
        Parallel verification calls.
    on_progress:
        Forwarded to :class:`EditApplier`.
    """
    parser = PacketStreamParser()
    verifier = EditVerifier(document, verifier_client, max_workers=verify_workers)
    applier = EditApplier(document, history, on_progress=on_progress)
    stream_errors: list[str] = []

    packets = normalize_stream(_until_failure(fragments, stream_errors), parser)
    apply_result: ApplyResult = applier.apply(verifier.verify(packets))

    summary = RunSummary(
        packets=parser.packets_emitted,
        malformed=parser.malformed_count,
        accepted=verifier.accepted,
        corrected=verifier.corrected,
        rejected=verifier.rejected,
        verification_errors=verifier.verification_errors,
        applied=apply_result.applied,
        skipped=apply_result.skipped,
        failed=apply_result.failed,
        files_modified=list(apply_result.files_modified),
        failed_files=dict(apply_result.failed_files),
        errors=parser.errors + verifier.errors + apply_result.errors,
        stream_error=stream_errors[0] if stream_errors else "",
    )
    _logger.info(
        "[Pipeline] packets=%d malformed=%d accepted=%d corrected=%d rejected=%d "
        "applied=%d skipped=%d failed=%d",
        summary.packets, summary.malformed, summary.accepted, summary.corrected,
        summary.rejected, summary.applied, summary.skipped, summary.failed,
    )
    return summary
