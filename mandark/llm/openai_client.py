"""
OpenAI-compatible adapter — works with OpenAI and any other provider that
implements the OpenAI chat/completions API.
"""

import json
import logging
from typing import Iterator

import requests

from .base import LLMClient

log = logging.getLogger(__name__)


class OpenAIClient(LLMClient):

    provider = "openai"

    def __init__(self, base_url: str, model: str, api_key: str, **kwargs):
        super().__init__(model, **kwargs)
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def _payload(self, prompt: str, stream: bool) -> dict:
        messages = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": prompt})
        return {
            "model": self.model,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "temperature": 0,
            "stream": stream,
        }

    # ── Non-streaming generation ──

    def _generate(self, prompt: str) -> str:
        log.debug(f"[OpenAI] Sending {len(prompt)} chars to {self.model}")
        url = f"{self.base_url}/chat/completions"
        response = requests.post(url, headers=self._headers(),
                                 json=self._payload(prompt, stream=False),
                                 timeout=(10, 300))
        response.raise_for_status()
        data = response.json()

        usage = data.get("usage", {})
        log.debug(f"[OpenAI] Usage: prompt={usage.get('prompt_tokens')} "
                  f"completion={usage.get('completion_tokens')}")
        return data["choices"][0]["message"]["content"] or ""

    # ── Streaming generation ──

    def _stream(self, prompt: str) -> Iterator[str]:
        log.debug(f"[OpenAI] Streaming {len(prompt)} chars to {self.model}")
        url = f"{self.base_url}/chat/completions"
        response = requests.post(url, headers=self._headers(),
                                 json=self._payload(prompt, stream=True),
                                 stream=True, timeout=(10, 120))
        response.raise_for_status()

        for line in response.iter_lines(decode_unicode=True):
            if not line or not line.startswith("data: "):
                continue
            data_str = line[6:]
            if data_str.strip() == "[DONE]":
                break
            try:
                chunk = json.loads(data_str)
                delta = chunk.get("choices", [{}])[0].get("delta", {})
            except (json.JSONDecodeError, KeyError, IndexError):
                continue
            token = delta.get("content") or ""
            if token:
                yield token
