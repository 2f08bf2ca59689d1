"""
mandark — point an LLM at local files and apply its edits, verified.

Public API for library usage::

    from mandark import compile_document, run_edit_pipeline, HistoryStore

    compiled = compile_document(["src/"], include_imports=True)
    summary = run_edit_pipeline(compiled.document, fragments, HistoryStore())
"""

from .editing import compile_document, HistoryStore, EditPacket, Operation
from .pipeline import run_edit_pipeline, RunSummary

__all__ = [
    "compile_document", "HistoryStore", "EditPacket", "Operation",
    "run_edit_pipeline", "RunSummary",
]
