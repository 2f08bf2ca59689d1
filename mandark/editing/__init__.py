"""Verified edit pipeline — compile, normalize, verify, apply, revert."""

from .document import SourceDocument, FileSpan, CompileResult, compile_document, write_compiled
from .packets import EditPacket, Operation, Verdict, VerificationResult
from .stream_parser import PacketStreamParser, normalize_stream, parse_packets, format_packet
from .verifier import EditVerifier, check_anchors
from .edit_applier import EditApplier, ApplyResult
from .history import HistoryStore, HistoryEntry, RevertResult
from .errors import (
    MandarkError, InputError, NoFilesFound, PathNotFound, StreamParseError,
    VerificationError, ApplyError, RevertError,
)

__all__ = [
    "SourceDocument", "FileSpan", "CompileResult", "compile_document", "write_compiled",
    "EditPacket", "Operation", "Verdict", "VerificationResult",
    "PacketStreamParser", "normalize_stream", "parse_packets", "format_packet",
    "EditVerifier", "check_anchors",
    "EditApplier", "ApplyResult",
    "HistoryStore", "HistoryEntry", "RevertResult",
    "MandarkError", "InputError", "NoFilesFound", "PathNotFound", "StreamParseError",
    "VerificationError", "ApplyError", "RevertError",
]
