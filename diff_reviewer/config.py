"""
Configuration: loads settings from .diffreview.yaml, environment variables,
and built-in defaults (in that priority order: CLI args > env > YAML > defaults).
"""

import os

import yaml

from .review.file_filter import parse_exclude_patterns


_DEFAULTS = {
    "model": "gemini-2.5-pro",
    # Requests-per-minute budget per model tier
    "model_tiers": {
        "gemini-2.5-pro": 5,
        "gemini-2.5-flash": 10,
        "gemini-2.5-flash-lite": 15,
        "gemini-2.0-flash": 15,
        "gemini-2.0-flash-lite": 30,
    },
    "gemini_api_key": "",
    "gemini_base_url": "https://generativelanguage.googleapis.com/v1beta",
    "max_files_per_batch": 10,
    "max_tokens_per_batch": 12000,
    "chars_per_token": 3.5,
    "batching_file_threshold": 2,
    "batching_hunk_threshold": 5,
    "max_retries": 3,
    "backoff_base": 1.0,
    "backoff_cap": 30.0,
    "exclude": [],
    "language": None,
    "full_context": True,
    "max_context_chars": 5000,
    "log_dir": ".diffreview/logs",
    "pricing": {},
}

# Config file search locations
_CONFIG_FILENAMES = [".diffreview.yaml", ".diffreview.yml"]


def _find_config_file(explicit_path: str | None = None) -> str | None:
    """Find the config file. Checks explicit path, CWD, then user home."""
    if explicit_path:
        if os.path.isfile(explicit_path):
            return explicit_path
        return None

    # Search CWD first, then home directory
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


def parse_pattern_list(value) -> list[str]:
    """Accept a comma-separated string or a list and return clean patterns."""
    if isinstance(value, str):
        return parse_exclude_patterns(value)
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if str(v).strip()]
    return []


def _parse_tiers(value) -> dict[str, int]:
    if not isinstance(value, dict):
        return dict(_DEFAULTS["model_tiers"])
    tiers: dict[str, int] = {}
    for name, rpm in value.items():
        try:
            rpm = int(rpm)
        except (TypeError, ValueError):
            continue
        if rpm > 0:
            tiers[str(name)] = rpm
    return tiers or dict(_DEFAULTS["model_tiers"])


class Config:
    """Application configuration.

    Settings are resolved in priority order:
    1. CLI arguments (handled by caller)
    2. Environment variables
    3. .diffreview.yaml config file
    4. Built-in defaults
    """

    def __init__(self, yaml_data: dict | None = None):
        yd = yaml_data or {}

        # Helper: env var > yaml > default
        def _get(env_key: str | None, yaml_key: str, default, cast=str):
            env_val = os.getenv(env_key) if env_key else None
            if env_val is not None:
                try:
                    return cast(env_val)
                except ValueError:
                    pass
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                try:
                    return cast(yaml_val)
                except (TypeError, ValueError):
                    pass
            return default

        def _get_bool(env_key: str, yaml_key: str, default: bool) -> bool:
            env_val = os.getenv(env_key)
            if env_val is not None:
                return env_val.lower() == "true"
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                return bool(yaml_val)
            return default

        self.MODEL = _get("DIFF_REVIEW_MODEL", "model", _DEFAULTS["model"])
        self.MODEL_TIERS: dict[str, int] = _parse_tiers(
            yd.get("model_tiers", _DEFAULTS["model_tiers"]))

        # Gemini provider
        gemini_section = yd.get("gemini", {}) if isinstance(yd.get("gemini"), dict) else {}
        self.GEMINI_API_KEY = os.getenv("GEMINI_API_KEY") or gemini_section.get(
            "api_key", _DEFAULTS["gemini_api_key"])
        self.GEMINI_BASE_URL = os.getenv("GEMINI_BASE_URL") or gemini_section.get(
            "base_url", _DEFAULTS["gemini_base_url"])

        # Batching
        self.MAX_FILES_PER_BATCH = _get("MAX_FILES_PER_BATCH", "max_files_per_batch",
                                        _DEFAULTS["max_files_per_batch"], cast=int)
        self.MAX_TOKENS_PER_BATCH = _get("MAX_TOKENS_PER_BATCH", "max_tokens_per_batch",
                                         _DEFAULTS["max_tokens_per_batch"], cast=int)
        self.CHARS_PER_TOKEN = _get("CHARS_PER_TOKEN", "chars_per_token",
                                    _DEFAULTS["chars_per_token"], cast=float)
        self.BATCHING_FILE_THRESHOLD = _get("BATCHING_FILE_THRESHOLD",
                                            "batching_file_threshold",
                                            _DEFAULTS["batching_file_threshold"],
                                            cast=int)
        self.BATCHING_HUNK_THRESHOLD = _get("BATCHING_HUNK_THRESHOLD",
                                            "batching_hunk_threshold",
                                            _DEFAULTS["batching_hunk_threshold"],
                                            cast=int)

        # Retry / backoff
        self.MAX_RETRIES = _get("LLM_MAX_RETRIES", "max_retries",
                                _DEFAULTS["max_retries"], cast=int)
        self.BACKOFF_BASE = _get("LLM_BACKOFF_BASE", "backoff_base",
                                 _DEFAULTS["backoff_base"], cast=float)
        self.BACKOFF_CAP = _get("LLM_BACKOFF_CAP", "backoff_cap",
                                _DEFAULTS["backoff_cap"], cast=float)

        # Filtering
        env_exclude = os.getenv("DIFF_REVIEW_EXCLUDE")
        if env_exclude is not None:
            self.EXCLUDE_PATTERNS = parse_pattern_list(env_exclude)
        else:
            self.EXCLUDE_PATTERNS = parse_pattern_list(
                yd.get("exclude", _DEFAULTS["exclude"]))

        # Prompt enrichment
        self.LANGUAGE = _get("DIFF_REVIEW_LANGUAGE", "language", _DEFAULTS["language"])
        self.FULL_CONTEXT = _get_bool("DIFF_REVIEW_FULL_CONTEXT", "full_context",
                                      _DEFAULTS["full_context"])
        self.MAX_CONTEXT_CHARS = _get("MAX_CONTEXT_CHARS", "max_context_chars",
                                      _DEFAULTS["max_context_chars"], cast=int)

        self.LOG_DIR = _get("DIFF_REVIEW_LOG_DIR", "log_dir", _DEFAULTS["log_dir"])

        self.PRICING: dict = yd.get("pricing", _DEFAULTS["pricing"])
        if not isinstance(self.PRICING, dict):
            self.PRICING = {}

    @classmethod
    def load(cls, config_path: str | None = None) -> "Config":
        """Load config from YAML file (if found) + env vars + defaults."""
        path = _find_config_file(config_path)
        yaml_data = _load_yaml(path) if path else {}
        return cls(yaml_data)
