"""
Document compiler — packs a set of files into one line-tagged document.

Every physical line of every file gets a document-global tag (1..N, dense
and strictly increasing), so the model can anchor edits unambiguously
across files.  Tags resolve back to ``(file, local line)`` purely by
position; they are never recomputed from content.
"""

from __future__ import annotations

import bisect
import logging
import os
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .errors import NoFilesFound, PathNotFound

logger = logging.getLogger(__name__)

SKIP_DIRS = {
    ".git", ".hg", ".svn", "node_modules", "__pycache__", "venv", ".venv",
    "env", "dist", "build", ".tox", ".mypy_cache", ".pytest_cache",
    "target", "bin", "obj", ".idea", ".vscode", ".eggs",
    "site-packages", ".next", ".nuxt", "coverage", "htmlcov", ".mandark",
}

BINARY_EXTENSIONS = {
    ".pyc", ".pyo", ".exe", ".dll", ".so", ".dylib", ".o", ".obj",
    ".class", ".jar", ".war", ".zip", ".tar", ".gz", ".bz2", ".xz", ".7z",
    ".png", ".jpg", ".jpeg", ".gif", ".ico", ".bmp", ".webp",
    ".mp3", ".mp4", ".wav", ".avi", ".mov",
    ".pdf", ".doc", ".docx", ".xls", ".xlsx",
    ".woff", ".woff2", ".ttf", ".eot",
    ".db", ".sqlite", ".sqlite3",
}

_SNIFF_BYTES = 8192


def split_source_lines(text: str) -> list[str]:
    """Split *text* into physical lines without their terminators.

    Only ``\\n``, ``\\r\\n`` and ``\\r`` end a line; a trailing newline does
    not produce an extra empty line.  The compiler and the applier both
    use this, so tags and file-local indices always agree.
    """
    if not text:
        return []
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    lines = normalized.split("\n")
    if normalized.endswith("\n"):
        lines.pop()
    return lines


@dataclass(frozen=True)
class FileSpan:
    """Where one source file sits in the compiled document."""
    path: str
    start_line: int
    line_count: int
    abs_path: str = ""

    @property
    def end_line(self) -> int:
        """Last tag belonging to this file (``start_line - 1`` if empty)."""
        return self.start_line + self.line_count - 1

    def contains(self, tag: int) -> bool:
        return self.start_line <= tag <= self.end_line


@dataclass(frozen=True)
class SourceDocument:
    """Immutable compiled representation handed to the model."""
    files: tuple[FileSpan, ...]
    text: str
    lines: tuple[str, ...] = field(repr=False, default=())
    root: str = ""

    @property
    def total_lines(self) -> int:
        return len(self.lines)

    def span_for_path(self, path: str) -> Optional[FileSpan]:
        """Return the span for *path*.

        Accepts the display path shown in the document header or any path
        that resolves (relative to the document root) to the same file.
        """
        cleaned = path.strip().replace("\\", "/")
        if cleaned.startswith("./"):
            cleaned = cleaned[2:]
        for span in self.files:
            if span.path == cleaned:
                return span
        wanted = _normalize(os.path.join(self.root or os.getcwd(), cleaned))
        for span in self.files:
            if _normalize(span.abs_path) == wanted:
                return span
        return None

    def resolve(self, tag: int) -> tuple[FileSpan, int]:
        """Map a line tag to ``(span, 1-based local line)``.

        Raises ``KeyError`` for tags outside the document.
        """
        if tag < 1 or tag > self.total_lines:
            raise KeyError(tag)
        starts = [s.start_line for s in self.files if s.line_count]
        spans = [s for s in self.files if s.line_count]
        idx = bisect.bisect_right(starts, tag) - 1
        span = spans[idx]
        return span, tag - span.start_line + 1

    def line(self, tag: int) -> str:
        """Original text of the line carrying *tag*."""
        if tag < 1 or tag > self.total_lines:
            raise KeyError(tag)
        return self.lines[tag - 1]

    def lines_for(self, target) -> list[tuple[int, str]]:
        """Original ``(tag, text)`` pairs covered by a FileSpan or EditPacket.

        An insertion packet covers only its anchor line.  Raises
        ``KeyError`` when the packet's file or tags are not in the document.
        """
        if isinstance(target, FileSpan):
            first, last = target.start_line, target.end_line
        else:
            span = self.span_for_path(target.file_path)
            if span is None:
                raise KeyError(target.file_path)
            first, last = target.start_line, target.last_line
            if not (span.contains(first) and span.contains(last)):
                raise KeyError((first, last))
        return [(tag, self.lines[tag - 1]) for tag in range(first, last + 1)]

    def excerpt(self, start: int, end: int, context: int = 0) -> str:
        """Tagged original lines from *start* to *end*, clipped to the file.

        *context* extra lines on each side are included when they belong
        to the same file as *start*.
        """
        span, _ = self.resolve(start)
        lo = max(span.start_line, start - context)
        hi = min(span.end_line, end + context)
        return "\n".join(format_line(tag, self.lines[tag - 1])
                         for tag in range(lo, hi + 1))


@dataclass
class CompileResult:
    """Outcome of compiling a file set."""
    document: SourceDocument
    file_count: int = 0
    skipped_binary: int = 0
    added_imports: list[str] = field(default_factory=list)


def format_header(path: str, span: FileSpan) -> str:
    if span.line_count:
        where = f"lines {span.start_line}-{span.end_line}"
    else:
        where = "lines none"
    return f"### FILE: {path} ({where})"


def format_line(tag: int, text: str) -> str:
    return f"{tag}| {text}"


def _normalize(path: str) -> str:
    return os.path.normcase(os.path.normpath(os.path.abspath(path)))


def _display_path(path: str, root: str) -> str:
    rel = os.path.relpath(path, root)
    if rel.startswith(".."):
        return path
    return rel.replace(os.sep, "/")


def read_text_file(path: str) -> Optional[str]:
    """Return the decoded text of *path*, or None if it looks binary."""
    ext = os.path.splitext(path)[1].lower()
    if ext in BINARY_EXTENSIONS:
        return None
    with open(path, "rb") as f:
        raw = f.read()
    if b"\0" in raw[:_SNIFF_BYTES]:
        return None
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return None


def safe_write(path: str, data: bytes) -> None:
    """Write *data* to *path* atomically via temp file + rename."""
    abs_path = os.path.abspath(path)
    tmp_path = abs_path + ".mandark_tmp"
    try:
        with open(tmp_path, "wb") as f:
            f.write(data)
        os.replace(tmp_path, abs_path)
    except Exception:
        # Clean up temp file on failure
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def _walk_folder(folder: str) -> list[str]:
    found: list[str] = []
    for root, dirs, files in os.walk(folder):
        # Prune in place so os.walk skips them
        dirs[:] = sorted(d for d in dirs if d not in SKIP_DIRS)
        for fname in sorted(files):
            path = os.path.join(root, fname)
            if os.path.isfile(path):
                found.append(path)
    return found


def resolve_paths(paths: Iterable[str]) -> list[str]:
    """Expand *paths* into a deduplicated, ordered list of regular files.

    Raises :class:`PathNotFound` for any path that does not exist.
    """
    resolved: list[str] = []
    seen: set[str] = set()
    for raw in paths:
        if not os.path.exists(raw):
            raise PathNotFound(raw)
        if os.path.isdir(raw):
            candidates = _walk_folder(raw)
        else:
            candidates = [raw]
        for path in candidates:
            key = _normalize(path)
            if key in seen:
                continue
            seen.add(key)
            resolved.append(os.path.abspath(path))
    return resolved


def build_document(
    contents: list[tuple[str, str]],
    root: Optional[str] = None,
) -> SourceDocument:
    """Build a SourceDocument from ``(path, text)`` pairs.

    Paths may be absolute or relative to *root* (default: CWD); headers
    show them relative to *root*.
    """
    root = os.path.abspath(root or os.getcwd())
    spans: list[FileSpan] = []
    out: list[str] = []
    all_lines: list[str] = []
    next_tag = 1
    for path, text in contents:
        abs_path = os.path.abspath(os.path.join(root, path))
        display = _display_path(abs_path, root)
        file_lines = split_source_lines(text)
        span = FileSpan(path=display, start_line=next_tag,
                        line_count=len(file_lines), abs_path=abs_path)
        spans.append(span)
        out.append(format_header(display, span))
        for offset, line in enumerate(file_lines):
            out.append(format_line(next_tag + offset, line))
        all_lines.extend(file_lines)
        next_tag += len(file_lines)
    text = "\n".join(out) + ("\n" if out else "")
    return SourceDocument(files=tuple(spans), text=text,
                          lines=tuple(all_lines), root=root)


def compile_document(
    paths: Iterable[str],
    include_imports: bool = False,
    root: Optional[str] = None,
) -> CompileResult:
    """Compile files and folders into a line-tagged document.

    Parameters
    ----------
    paths:
        Files and/or folders.  Folders expand recursively.
    include_imports:
        Also pull in same-project files imported by the selected files
        (one level deep).
    root:
        Project root used for display paths and to decide which imports
        are same-project.  Defaults to the current directory.

    Raises
    ------
    PathNotFound
        An explicit path does not exist.
    NoFilesFound
        Nothing readable was resolved.
    """
    root = os.path.abspath(root or os.getcwd())
    files = resolve_paths(paths)

    contents: list[tuple[str, str]] = []
    seen: set[str] = set()
    skipped = 0
    for path in files:
        text = read_text_file(path)
        if text is None:
            skipped += 1
            logger.debug("[Compile] Skipping non-text file %s", path)
            continue
        seen.add(_normalize(path))
        contents.append((path, text))

    added: list[str] = []
    if include_imports:
        from .imports import find_local_imports

        for path, _ in list(contents):
            for dep in find_local_imports(path, root):
                key = _normalize(dep)
                if key in seen:
                    continue
                text = read_text_file(dep)
                if text is None:
                    continue
                seen.add(key)
                contents.append((dep, text))
                added.append(dep)
        if added:
            logger.info("[Compile] Added %d imported files", len(added))

    if not contents:
        raise NoFilesFound("No text files found in the given paths")

    document = build_document(contents, root=root)
    logger.info(
        "[Compile] %d files, %d lines (%d binary skipped)",
        len(contents), document.total_lines, skipped,
    )
    return CompileResult(
        document=document,
        file_count=len(contents),
        skipped_binary=skipped,
        added_imports=[_display_path(p, root) for p in added],
    )


def write_compiled(document: SourceDocument, output_path: str) -> None:
    """Persist the compiled document text verbatim."""
    with open(output_path, "w", encoding="utf-8", newline="") as f:
        f.write(document.text)
