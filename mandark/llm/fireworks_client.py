"""
Fireworks adapter — Fireworks serves an OpenAI-compatible chat API.
"""

from .openai_client import OpenAIClient

FIREWORKS_BASE_URL = "https://api.fireworks.ai/inference/v1"


class FireworksClient(OpenAIClient):

    provider = "fireworks"

    def __init__(self, model: str, api_key: str, base_url: str = FIREWORKS_BASE_URL,
                 **kwargs):
        super().__init__(base_url=base_url, model=model, api_key=api_key, **kwargs)
