"""
Configuration — loads settings from .mandark.yaml, environment variables,
and built-in defaults (in that priority order: CLI args > env > YAML > defaults).
"""

import os

import yaml


_DEFAULTS = {
    "model": "sonnet35",
    "verifier_model": "llama405",
    "verify": True,
    "verify_workers": 4,
    "history_file": os.path.join("~", ".mandark", "history.json"),
    "compiled_output": "compiled-code.txt",
    "log_dir": ".mandark/logs",
    "llm_max_retries": 3,
    "llm_retry_delay": 2.0,
    "anthropic_base_url": "https://api.anthropic.com/v1",
    "openai_base_url": "https://api.openai.com/v1",
    "fireworks_base_url": "https://api.fireworks.ai/inference/v1",
}

# Config file search locations
_CONFIG_FILENAMES = [".mandark.yaml", ".mandark.yml"]

_PROVIDERS = ("anthropic", "openai", "fireworks")


def _find_config_file(explicit_path: str | None = None) -> str | None:
    """Find the config file. Checks explicit path, CWD, then user home."""
    if explicit_path:
        if os.path.isfile(explicit_path):
            return explicit_path
        return None

    search_dirs = [os.getcwd(), os.path.expanduser("~")]
    for d in search_dirs:
        for name in _CONFIG_FILENAMES:
            path = os.path.join(d, name)
            if os.path.isfile(path):
                return path
    return None


def _load_yaml(path: str) -> dict:
    """Load YAML file, returns empty dict on failure."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError):
        return {}


class Config:
    """Application configuration.

    Settings are resolved in priority order:
    1. CLI arguments (handled by caller)
    2. Environment variables
    3. .mandark.yaml config file
    4. Built-in defaults
    """

    def __init__(self, yaml_data: dict | None = None):
        yd = yaml_data or {}

        # Helper: env var > yaml > default
        def _get(env_key: str, yaml_key: str, default, cast=str):
            env_val = os.getenv(env_key)
            if env_val is not None:
                return cast(env_val)
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                return cast(yaml_val)
            return default

        def _get_bool(env_key: str, yaml_key: str, default: bool) -> bool:
            env_val = os.getenv(env_key)
            if env_val is not None:
                return env_val.lower() == "true"
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                return bool(yaml_val)
            return default

        self.DEFAULT_MODEL = _get("MANDARK_MODEL", "model", _DEFAULTS["model"])
        self.VERIFIER_MODEL = _get("MANDARK_VERIFIER_MODEL", "verifier_model",
                                   _DEFAULTS["verifier_model"])
        self.VERIFY = _get_bool("MANDARK_VERIFY", "verify", _DEFAULTS["verify"])
        self.VERIFY_WORKERS = _get("MANDARK_VERIFY_WORKERS", "verify_workers",
                                   _DEFAULTS["verify_workers"], cast=int)

        self.HISTORY_FILE = _get("MANDARK_HISTORY_FILE", "history_file",
                                 _DEFAULTS["history_file"])
        self.COMPILED_OUTPUT = _get("MANDARK_COMPILED_OUTPUT", "compiled_output",
                                    _DEFAULTS["compiled_output"])
        self.LOG_DIR = _get("MANDARK_LOG_DIR", "log_dir", _DEFAULTS["log_dir"])

        self.LLM_MAX_RETRIES = _get("LLM_MAX_RETRIES", "llm_max_retries",
                                    _DEFAULTS["llm_max_retries"], cast=int)
        self.LLM_RETRY_DELAY = _get("LLM_RETRY_DELAY", "llm_retry_delay",
                                    _DEFAULTS["llm_retry_delay"], cast=float)

        # Per-provider credentials: env > yaml section > default
        self._api_keys: dict[str, str] = {}
        self._base_urls: dict[str, str] = {}
        for provider in _PROVIDERS:
            section = yd.get(provider, {}) if isinstance(yd.get(provider), dict) else {}
            prefix = provider.upper()
            self._api_keys[provider] = (
                os.getenv(f"{prefix}_API_KEY") or str(section.get("api_key", "") or "")
            )
            self._base_urls[provider] = (
                os.getenv(f"{prefix}_BASE_URL")
                or section.get("base_url")
                or _DEFAULTS[f"{provider}_base_url"]
            )

    def api_key(self, provider: str) -> str:
        """Return the API key for *provider*, or an empty string."""
        return self._api_keys.get(provider, "")

    def has_api_key(self, provider: str) -> bool:
        return bool(self.api_key(provider))

    def base_url(self, provider: str) -> str:
        return self._base_urls.get(provider, "")

    @classmethod
    def load(cls, config_path: str | None = None) -> "Config":
        """Load config from YAML file (if found) + env vars + defaults."""
        path = _find_config_file(config_path)
        yaml_data = _load_yaml(path) if path else {}
        return cls(yaml_data)
