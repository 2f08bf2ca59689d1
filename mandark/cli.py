"""
CLI entry point — argument parsing and main execution flow.

    mandark PATHS... [MODEL] [--task TEXT | --ask QUESTION] [-a] [-p] [--no-verify]
    mandark revert
"""

import argparse
import logging
import sys

from .cli_display import color, print_packet, print_revert, print_summary, setup_logger
from .config import Config
from .editing.document import SourceDocument, compile_document, write_compiled
from .editing.errors import InputError
from .editing.history import HistoryStore
from .llm import AnthropicClient, FireworksClient, LLMClient, LLMError, OpenAIClient
from .models import MODELS, PREFERRED_VERIFIER, ModelSpec, default_model, find_model
from .pipeline import run_edit_pipeline
from .prompts import ASK_SYSTEM_PROMPT, SYSTEM_PROMPT, ask_prompt, task_prompt

log = logging.getLogger(__name__)

_RED = "\033[31m"
_YELLOW = "\033[33m"


def build_client(spec: ModelSpec, cfg: Config, system_prompt: str = "") -> LLMClient:
    """Create the provider adapter for *spec*."""
    kwargs = dict(
        max_retries=cfg.LLM_MAX_RETRIES,
        retry_delay=cfg.LLM_RETRY_DELAY,
        max_tokens=spec.max_output_tokens,
        system_prompt=system_prompt,
    )
    api_key = cfg.api_key(spec.provider)
    if spec.provider == "anthropic":
        return AnthropicClient(base_url=cfg.base_url("anthropic"), model=spec.name,
                               api_key=api_key, **kwargs)
    if spec.provider == "openai":
        return OpenAIClient(base_url=cfg.base_url("openai"), model=spec.name,
                            api_key=api_key, **kwargs)
    if spec.provider == "fireworks":
        return FireworksClient(model=spec.name, api_key=api_key,
                               base_url=cfg.base_url("fireworks"), **kwargs)
    raise ValueError(f"Unsupported provider: {spec.provider}")


def choose_verifier(cfg: Config, selected: ModelSpec) -> ModelSpec:
    """Prefer the configured verifier model; fall back to the primary model
    when its provider has no API key."""
    preferred = find_model(cfg.VERIFIER_MODEL) or find_model(PREFERRED_VERIFIER)
    if preferred is not None and cfg.has_api_key(preferred.provider):
        return preferred
    log.warning(
        "[Verify] No API key for verifier model %s; verifying with %s instead",
        cfg.VERIFIER_MODEL, selected.nickname,
    )
    return selected


def _split_model(paths: list[str], explicit: str | None,
                 cfg: Config) -> tuple[list[str], ModelSpec | None]:
    """Pick the model: --model, else a trailing nickname, else the config default."""
    if explicit:
        return paths, find_model(explicit)
    if len(paths) > 1 and find_model(paths[-1]) is not None:
        return paths[:-1], find_model(paths[-1])
    return paths, find_model(cfg.DEFAULT_MODEL) or default_model()


def ask(client: LLMClient, document: SourceDocument, question: str) -> int:
    """Stream the model's answer about *document* to stdout."""
    try:
        for fragment in client.iter_fragments(ask_prompt(document.text, question)):
            print(fragment, end="", flush=True)
    except LLMError as exc:
        print()
        print(color(f"Answer ended early: {exc}", _RED))
        return 1
    print()
    return 0


def revert(cfg: Config) -> int:
    result = HistoryStore(cfg.HISTORY_FILE).revert()
    print_revert(result)
    return 1 if result.failed else 0


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv

    if argv and argv[0] == "revert":
        cfg = Config.load()
        setup_logger(cfg.LOG_DIR)
        return revert(cfg)

    parser = argparse.ArgumentParser(
        prog="mandark",
        description="Mandark — verified LLM edits for local files",
        epilog="Run 'mandark revert' to undo the last run.",
    )
    parser.add_argument("paths", nargs="+",
                        help="Files or folders to include; a trailing model "
                             "nickname selects the model")
    parser.add_argument("--model", default=None,
                        help="Model nickname (" + ", ".join(m.nickname for m in MODELS) + ")")
    parser.add_argument("--task", default=None,
                        help="What to change (prompted for when omitted)")
    parser.add_argument("--ask", default=None, metavar="QUESTION",
                        help="Ask a question about the code; nothing is edited")
    parser.add_argument("-a", "--include-imports", action="store_true",
                        help="Also include same-project files imported by the given files")
    parser.add_argument("-p", "--print-code", action="store_true",
                        help="Write the line-tagged document to a file and exit")
    parser.add_argument("--no-verify", action="store_true",
                        help="Skip the model verification pass")
    parser.add_argument("--config", default=None,
                        help="Path to .mandark.yaml config file")
    args = parser.parse_args(argv)

    cfg = Config.load(args.config)
    setup_logger(cfg.LOG_DIR)

    paths, selected = _split_model(args.paths, args.model, cfg)
    if selected is None:
        print(color(f"Unknown model '{args.model}'.", _RED))
        return 1

    # ── 1. Compile ──
    try:
        compiled = compile_document(paths, include_imports=args.include_imports)
    except InputError as exc:
        print(color(f"Problem: {exc}", _RED))
        return 1

    document = compiled.document
    if args.print_code:
        write_compiled(document, cfg.COMPILED_OUTPUT)
        print(f"Combined line-tagged code saved to {cfg.COMPILED_OUTPUT}.")
        return 0

    print(f"Loaded {compiled.file_count} files ({document.total_lines} lines)"
          + (f", {compiled.skipped_binary} binary files skipped" if compiled.skipped_binary else ""))
    for path in compiled.added_imports:
        print(f"  + {path} (imported)")
    print(f"Selected model: {selected.nickname} ({selected.name} from {selected.provider})")

    if not cfg.has_api_key(selected.provider):
        print(color(f"No API key for {selected.provider}. Set "
                    f"{selected.provider.upper()}_API_KEY or add it to .mandark.yaml.", _RED))
        return 1

    # ── 2. Task ──
    question = args.ask
    task = args.task
    if question is None:
        while not task or not task.strip():
            try:
                task = input("What do you need me to do? "
                             "(start with 'ask' to ask a question instead) ")
            except EOFError:
                return 1
        if task.lower().startswith("ask "):
            question = task[4:].strip()

    if question:
        return ask(build_client(selected, cfg, system_prompt=ASK_SYSTEM_PROMPT),
                   document, question)

    # ── 3. Stream, verify, apply ──
    client = build_client(selected, cfg, system_prompt=SYSTEM_PROMPT)
    verifier_client = None
    if cfg.VERIFY and not args.no_verify:
        verifier_spec = choose_verifier(cfg, selected)
        print(f"Verifying edits with {verifier_spec.nickname}")
        verifier_client = build_client(verifier_spec, cfg)

    history = HistoryStore(cfg.HISTORY_FILE)
    fragments = client.iter_fragments(task_prompt(document.text, task))
    summary = run_edit_pipeline(
        document, fragments, history,
        verifier_client=verifier_client,
        verify_workers=cfg.VERIFY_WORKERS,
        on_progress=lambda packet, status, detail: print_packet(document, packet, status, detail),
    )
    print_summary(summary)
    if summary.packets == 0 and summary.malformed == 0:
        print(color("The model proposed no edits.", _YELLOW))
    return 1 if summary.partial_failure else 0


if __name__ == "__main__":
    sys.exit(main())
