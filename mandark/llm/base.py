import logging
import random
import time
from abc import ABC, abstractmethod
from typing import Iterator

log = logging.getLogger(__name__)


class LLMError(Exception):
    """Raised when all LLM retries are exhausted."""


class LLMClient(ABC):
    """A provider adapter.

    The pipeline only ever asks one thing of a provider: a sequence of raw
    text fragments (:meth:`iter_fragments`).  Provider framing (SSE events,
    JSON deltas) stays inside the adapter.
    """

    provider = "base"

    def __init__(self, model: str, max_retries: int = 3, retry_delay: float = 2.0,
                 max_tokens: int = 8192, system_prompt: str = ""):
        self.model = model
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.max_tokens = max_tokens
        self.system_prompt = system_prompt

    # ── Public entry points ──

    def iter_fragments(self, prompt: str) -> Iterator[str]:
        """Stream the response to *prompt* as raw text fragments.

        Not retried: a failure mid-stream would duplicate fragments the
        caller has already consumed.  Errors surface as :class:`LLMError`.
        """
        received = 0
        try:
            for fragment in self._stream(prompt):
                if not fragment:
                    continue
                received += 1
                yield fragment
        except LLMError:
            raise
        except Exception as e:
            raise LLMError(f"[{self.provider}] Stream failed: {e}") from e
        log.debug(f"[LLM] {self.provider} streamed {received} fragments")

    def generate_response(self, prompt: str) -> str:
        """Generate a complete response with retry and exponential backoff.

        Raises :class:`LLMError` after all retries are exhausted.
        """
        last_error: Exception | None = None

        for attempt in range(1, self.max_retries + 1):
            try:
                result = self._generate(prompt)
                if result and result.strip():
                    return result
                log.warning(
                    f"[LLM] Empty response on attempt {attempt}/{self.max_retries}")
                last_error = LLMError("empty response")
            except Exception as e:
                last_error = e
                log.warning(
                    f"[LLM] Error on attempt {attempt}/{self.max_retries}: {e}")

            if attempt < self.max_retries:
                # Jittered exponential backoff
                wait = self.retry_delay * (2 ** (attempt - 1))
                jitter = wait * 0.1 * random.random()
                # Special handling for 429: wait longer
                if "429" in str(last_error):
                    wait *= 2
                    log.info(f"[LLM] Rate limit detected (429). Backing off for {wait:.1f}s")
                time.sleep(wait + jitter)

        raise LLMError(
            f"LLM failed after {self.max_retries} retries: {last_error}")

    # ── Subclass hooks ──

    @abstractmethod
    def _generate(self, prompt: str) -> str:
        """Synchronous (non-streaming) generation."""

    @abstractmethod
    def _stream(self, prompt: str) -> Iterator[str]:
        """Yield text deltas from a streaming request."""
