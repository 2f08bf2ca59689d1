"""
Known models, addressed on the command line by nickname.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ModelSpec:
    nickname: str
    name: str
    provider: str
    max_output_tokens: int = 8192


MODELS: list[ModelSpec] = [
    ModelSpec("sonnet35", "claude-3-5-sonnet-20240620", "anthropic", 8192),
    ModelSpec("haiku", "claude-3-haiku-20240307", "anthropic", 4096),
    ModelSpec("4o", "gpt-4o-2024-08-06", "openai", 16384),
    ModelSpec("4omini", "gpt-4o-mini", "openai", 16384),
    ModelSpec("llama405", "accounts/fireworks/models/llama-v3p1-405b-instruct",
              "fireworks", 16384),
]

PREFERRED_VERIFIER = "llama405"


def find_model(nickname: str) -> ModelSpec | None:
    for spec in MODELS:
        if spec.nickname == nickname:
            return spec
    return None


def default_model() -> ModelSpec:
    return MODELS[0]
