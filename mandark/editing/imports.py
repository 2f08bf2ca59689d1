"""
Import discovery — finds same-project files referenced by a source file.

Uses tree-sitter to extract import specifiers (Python, JavaScript,
TypeScript), then resolves each specifier to a file on disk.  Only files
that exist under the project root are returned; third-party and stdlib
imports simply fail to resolve and are ignored.
"""

from __future__ import annotations

import functools
import logging
import os
from typing import Optional

import tree_sitter
import tree_sitter_javascript
import tree_sitter_python
import tree_sitter_typescript

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Language mapping
# ---------------------------------------------------------------------------

EXTENSION_TO_LANGUAGE: dict[str, str] = {
    ".py": "python",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
}

_JS_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".json")


def detect_language(file_path: str) -> Optional[str]:
    """Return the tree-sitter language name for *file_path*, or None."""
    ext = os.path.splitext(file_path)[1].lower()
    return EXTENSION_TO_LANGUAGE.get(ext)


_GRAMMARS = {
    "python": tree_sitter_python.language,
    "javascript": tree_sitter_javascript.language,
    "typescript": tree_sitter_typescript.language_typescript,
    "tsx": tree_sitter_typescript.language_tsx,
}

# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

# One pattern per blank-line separated block.  A block the installed grammar
# rejects is dropped on its own instead of disabling the whole language.

_JS_IMPORTS = """\
(import_statement source: (string) @import.mod)

(export_statement source: (string) @import.mod)

(call_expression
  function: (identifier) @import.keyword
  arguments: (arguments (string) @import.mod))
"""

_IMPORT_QUERIES: dict[str, str] = {
    "python": """\
(import_statement name: (dotted_name) @import.mod)

(import_statement name: (aliased_import name: (dotted_name) @import.mod))

(import_from_statement module_name: (dotted_name) @import.mod)

(import_from_statement module_name: (relative_import) @import.mod)

(import_from_statement
  module_name: (_) @import.mod
  name: (dotted_name) @import.name)

(import_from_statement
  module_name: (_) @import.mod
  name: (aliased_import name: (dotted_name) @import.name))
""",
    "javascript": _JS_IMPORTS,
    "typescript": _JS_IMPORTS,
    "tsx": _JS_IMPORTS,
}


@functools.lru_cache(maxsize=None)
def _grammar(language: str) -> tuple[tree_sitter.Language, tuple[tree_sitter.Query, ...]]:
    """Load the grammar for *language* and compile its import patterns once."""
    grammar = tree_sitter.Language(_GRAMMARS[language]())
    queries = []
    for block in _IMPORT_QUERIES[language].split("\n\n"):
        if not block.strip():
            continue
        try:
            queries.append(tree_sitter.Query(grammar, block))
        except (ValueError, NameError, SyntaxError) as exc:
            logger.debug("[Compile] Dropping %s import pattern: %s", language, exc)
    return grammar, tuple(queries)


def _capture(captures: dict, name: str) -> str | None:
    nodes = captures.get(name)
    if not nodes or nodes[0].text is None:
        return None
    return nodes[0].text.decode("utf-8", errors="replace")


def extract_imports(source_bytes: bytes, language: str) -> list[str]:
    """Return the import specifiers in *source_bytes*, in source order.

    Python ``from X import Y`` yields both ``X`` and ``X.Y`` (``.Y`` for a
    bare relative import), so submodule imports can be resolved too.
    """
    if language not in _GRAMMARS:
        logger.debug("[Compile] No tree-sitter grammar for %s", language)
        return []
    grammar, queries = _grammar(language)
    root = tree_sitter.Parser(grammar).parse(source_bytes).root_node

    found: dict[str, int] = {}
    for query in queries:
        for _, captures in tree_sitter.QueryCursor(query).matches(root):
            keyword = _capture(captures, "import.keyword")
            if keyword is not None and keyword != "require":
                continue
            module = _capture(captures, "import.mod")
            if module is None:
                continue
            spec = module.strip("\"'` ")
            name = _capture(captures, "import.name")
            if name is not None:
                spec += name if spec.endswith(".") else "." + name
            if spec and spec not in found:
                found[spec] = captures["import.mod"][0].start_byte
    return sorted(found, key=found.get)


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def _within(path: str, root: str) -> bool:
    path = os.path.normcase(os.path.abspath(path))
    root = os.path.normcase(os.path.abspath(root))
    return path == root or path.startswith(root + os.sep)


def _python_candidates(spec: str, file_dir: str, root: str) -> list[str]:
    if spec.startswith("."):
        dots = len(spec) - len(spec.lstrip("."))
        base = file_dir
        for _ in range(dots - 1):
            base = os.path.dirname(base)
        rest = spec[dots:]
        bases = [base]
    else:
        rest = spec
        bases = [file_dir, root]
    if not rest:
        return []
    rel = os.path.join(*rest.split("."))
    candidates = []
    for base in bases:
        candidates.append(os.path.join(base, rel + ".py"))
        candidates.append(os.path.join(base, rel, "__init__.py"))
    return candidates


def _js_candidates(spec: str, file_dir: str) -> list[str]:
    if not spec.startswith("."):
        return []
    base = os.path.normpath(os.path.join(file_dir, spec))
    candidates = [base]
    stem, ext = os.path.splitext(base)
    if ext in (".js", ".jsx", ".mjs", ".cjs"):
        # TypeScript sources are imported with their emitted .js name
        candidates.extend(stem + e for e in (".ts", ".tsx", ".mts", ".cts"))
    candidates.extend(base + e for e in _JS_EXTENSIONS)
    candidates.extend(os.path.join(base, "index" + e) for e in _JS_EXTENSIONS)
    return candidates


def find_local_imports(file_path: str, root: str) -> list[str]:
    """Return absolute paths of project files imported by *file_path*.

    Only direct imports are followed.  Files outside *root* are ignored.
    """
    language = detect_language(file_path)
    if language is None:
        return []
    try:
        with open(file_path, "rb") as fh:
            source = fh.read()
    except OSError as exc:
        logger.warning("[Compile] Cannot read %s for imports: %s", file_path, exc)
        return []

    file_dir = os.path.dirname(os.path.abspath(file_path))
    own = os.path.normcase(os.path.abspath(file_path))
    found: list[str] = []
    for spec in extract_imports(source, language):
        if language == "python":
            candidates = _python_candidates(spec, file_dir, root)
        else:
            candidates = _js_candidates(spec, file_dir)
        for candidate in candidates:
            if not os.path.isfile(candidate) or not _within(candidate, root):
                continue
            resolved = os.path.abspath(candidate)
            if os.path.normcase(resolved) != own and resolved not in found:
                found.append(resolved)
            break
    logger.debug("[Compile] %s imports %d local files", file_path, len(found))
    return found
