"""
Terminal output — file logging setup, colored summaries and packet previews.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime

from .editing.document import SourceDocument
from .editing.history import RevertResult
from .editing.packets import EditPacket, Operation
from .pipeline import RunSummary

_BOLD = "\033[1m"
_RED = "\033[31m"
_GREEN = "\033[32m"
_YELLOW = "\033[33m"
_CYAN = "\033[36m"
_RESET = "\033[0m"


def setup_logger(log_dir: str = ".mandark/logs") -> logging.Logger:
    """Creates a file logger. All verbose output goes here.

    Calling it again for the same *log_dir* reuses the existing handler.
    """
    os.makedirs(log_dir, exist_ok=True)
    logger = logging.getLogger("mandark")
    logger.setLevel(logging.DEBUG)

    log_dir = os.path.abspath(log_dir)
    for handler in logger.handlers:
        if (isinstance(handler, logging.FileHandler)
                and os.path.dirname(handler.baseFilename) == log_dir):
            return logger

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(log_dir, f"mandark_{timestamp}.log")

    # File handler: captures everything
    fh = logging.FileHandler(log_file, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%H:%M:%S"
    ))
    logger.addHandler(fh)

    return logger


def color(text: str, code: str) -> str:
    return f"{code}{text}{_RESET}"


def packet_diff(document: SourceDocument, packet: EditPacket) -> str:
    """Unified diff of the original lines a packet touches vs. its content."""
    span = document.span_for_path(packet.file_path)
    if span is None:
        return ""
    first_local = packet.start_line - span.start_line + 1
    lines = [f"--- a/{span.path}", f"+++ b/{span.path}", f"@@ line {first_local} @@"]
    prefix = " " if packet.operation is Operation.INSERT_AFTER_LINE else "-"
    lines.extend(prefix + text for _, text in document.lines_for(packet))
    lines.extend("+" + l for l in packet.new_content)
    return "\n".join(lines)


def format_colored_diff(diff_text: str) -> str:
    """Add ANSI colors to a unified diff string."""
    colored: list[str] = []
    for line in diff_text.splitlines():
        if line.startswith("+++") or line.startswith("---"):
            colored.append(color(line, _BOLD))
        elif line.startswith("@@"):
            colored.append(color(line, _CYAN))
        elif line.startswith("+"):
            colored.append(color(line, _GREEN))
        elif line.startswith("-"):
            colored.append(color(line, _RED))
        else:
            colored.append(line)
    return "\n".join(colored)


def print_packet(document: SourceDocument, packet: EditPacket, status: str,
                 detail: str = "") -> None:
    """Show one packet as it is applied."""
    icon = {"applied": color("✔", _GREEN), "skipped": color("–", _YELLOW),
            "failed": color("✘", _RED)}.get(status, "?")
    print(f"  {icon} {packet.describe()}")
    if packet.rationale:
        print(f"      {packet.rationale}")
    if status == "applied":
        diff = packet_diff(document, packet)
        if diff:
            print("\n".join("      " + l for l in format_colored_diff(diff).splitlines()))
    elif detail:
        print(color(f"      {detail}", _YELLOW))


def print_summary(summary: RunSummary) -> None:
    """Print the run counters."""
    print()
    print(color("Run summary", _BOLD))
    print(f"  Edit packets received : {summary.packets}"
          f" ({summary.malformed} malformed, skipped)")
    print(f"  Verification          : {summary.accepted} accepted,"
          f" {summary.corrected} corrected, {summary.rejected} rejected,"
          f" {summary.verification_errors} unverified")
    print(f"  Applied               : {summary.applied} applied,"
          f" {summary.skipped} skipped, {summary.failed} failed")
    if summary.stream_error:
        print(color(f"  Response ended early: {summary.stream_error}", _YELLOW))
    if summary.files_modified:
        print(f"  Files modified        : {', '.join(summary.files_modified)}")
    for path, error in summary.failed_files.items():
        print(color(f"  ✘ {path}: {error}", _RED))
    if summary.partial_failure:
        print(color(
            "  Run partially failed. 'mandark revert' restores every file "
            "written so far.", _YELLOW))
    elif summary.files_modified:
        print(color("  Undo with 'mandark revert'.", _CYAN))


def print_revert(result: RevertResult) -> None:
    """Print the outcome of a revert."""
    if result.no_history:
        print(color("Nothing to revert: no previous run is recorded.", _YELLOW))
        return
    print(color(f"Reverting run from {result.timestamp}", _BOLD))
    for restore in result.files:
        if restore.restored:
            print(f"  {color('✔', _GREEN)} {restore.path}")
        else:
            print(f"  {color('✘', _RED)} {restore.error}")
    if result.failed:
        print(color(f"{len(result.failed)} file(s) could not be restored.", _RED))
