"""
Anthropic Claude adapter — calls the Anthropic Messages API directly.
"""

import json
import logging
from typing import Iterator

import requests

from .base import LLMClient

log = logging.getLogger(__name__)


class AnthropicClient(LLMClient):

    provider = "anthropic"
    ANTHROPIC_VERSION = "2023-06-01"

    def __init__(self, base_url: str, model: str, api_key: str, **kwargs):
        super().__init__(model, **kwargs)
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": self.ANTHROPIC_VERSION,
        }

    def _payload(self, prompt: str, stream: bool) -> dict:
        payload = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [
                {"role": "user", "content": prompt},
            ],
        }
        if self.system_prompt:
            payload["system"] = self.system_prompt
        if stream:
            payload["stream"] = True
        return payload

    # ── Non-streaming generation ──

    def _generate(self, prompt: str) -> str:
        log.debug(f"[Anthropic] Sending {len(prompt)} chars to {self.model}")
        url = f"{self.base_url}/messages"
        response = requests.post(url, headers=self._headers(),
                                 json=self._payload(prompt, stream=False),
                                 timeout=(10, 300))
        response.raise_for_status()
        data = response.json()

        usage = data.get("usage", {})
        log.debug(f"[Anthropic] Usage: prompt={usage.get('input_tokens')} "
                  f"completion={usage.get('output_tokens')}")

        # Extract text from content blocks
        content_blocks = data.get("content", [])
        return "".join(
            block.get("text", "") for block in content_blocks if block.get("type") == "text"
        )

    # ── Streaming generation ──

    def _stream(self, prompt: str) -> Iterator[str]:
        log.debug(f"[Anthropic] Streaming {len(prompt)} chars to {self.model}")
        url = f"{self.base_url}/messages"
        response = requests.post(url, headers=self._headers(),
                                 json=self._payload(prompt, stream=True),
                                 stream=True, timeout=(10, 120))
        response.raise_for_status()

        for line in response.iter_lines(decode_unicode=True):
            if not line or not line.startswith("data: "):
                continue
            try:
                event = json.loads(line[6:])
            except json.JSONDecodeError:
                continue
            event_type = event.get("type", "")

            if event_type == "content_block_delta":
                delta = event.get("delta", {})
                if delta.get("type") == "text_delta":
                    token = delta.get("text", "")
                    if token:
                        yield token

            elif event_type == "error":
                raise RuntimeError(event.get("error", {}).get("message", "stream error"))

            elif event_type == "message_stop":
                break
