from .base import LLMClient, LLMError
from .anthropic_client import AnthropicClient
from .openai_client import OpenAIClient
from .fireworks_client import FireworksClient
