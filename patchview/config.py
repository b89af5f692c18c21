"""
Configuration: loads settings from .patchview.yaml, environment variables,
and built-in defaults (in that priority order: CLI args > env > YAML > defaults).
"""

import logging
import os

import yaml

logger = logging.getLogger(__name__)


_DEFAULTS = {
    "mode": "auto",
    "debounce_ms": 200,
    "ignore_patterns": [],
    "context_lines": 3,
    "git_enabled": True,
    "git_baseline": "working_tree",
    "git_cache_ttl_seconds": 5.0,
}

_MODES = ("auto", "preview")
_GIT_BASELINES = ("working_tree", "staged", "head")

# Config file search locations
_CONFIG_FILENAMES = [".patchview.yaml", ".patchview.yml"]


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
    except (OSError, yaml.YAMLError) as e:
        logger.warning("[Config] Could not load %s: %s", path, e)
        return {}


def _section(data: dict, name: str) -> dict:
    value = data.get(name, {})
    return value if isinstance(value, dict) else {}


class Config:
    """Application configuration.

    Settings are resolved in priority order:
    1. CLI arguments (handled by caller)
    2. Environment variables
    3. .patchview.yaml config file
    4. Built-in defaults
    """

    def __init__(self, yaml_data: dict | None = None):
        yd = yaml_data or {}
        watch_section = _section(yd, "watch")
        diff_section = _section(yd, "diff")
        git_section = _section(yd, "git")

        # Helper: env var > yaml > default
        def _get(env_key: str | None, yaml_val, default, cast=str):
            env_val = os.getenv(env_key) if env_key else None
            for source, val in (("env", env_val), ("yaml", yaml_val)):
                if val is None:
                    continue
                try:
                    return cast(val)
                except (TypeError, ValueError):
                    logger.warning(
                        "[Config] Ignoring invalid %s value %r for %s",
                        source, val, env_key or "setting",
                    )
            return default

        def _get_bool(env_key: str, yaml_val, default: bool) -> bool:
            env_val = os.getenv(env_key)
            if env_val is not None:
                return env_val.lower() in ("1", "true", "yes", "on")
            if yaml_val is not None:
                return bool(yaml_val)
            return default

        def _get_choice(env_key: str, yaml_val, default: str, choices) -> str:
            value = str(_get(env_key, yaml_val, default)).lower()
            if value not in choices:
                logger.warning(
                    "[Config] Unknown %s %r, using %r", env_key, value, default
                )
                return default
            return value

        self.MODE = _get_choice("PATCHVIEW_MODE", yd.get("mode"),
                                _DEFAULTS["mode"], _MODES)

        self.DEBOUNCE_MS = _get("PATCHVIEW_DEBOUNCE_MS",
                                watch_section.get("debounce_ms"),
                                _DEFAULTS["debounce_ms"], cast=int)
        if self.DEBOUNCE_MS < 0:
            self.DEBOUNCE_MS = _DEFAULTS["debounce_ms"]

        self.IGNORE_PATTERNS: list[str] = watch_section.get(
            "ignore_patterns", _DEFAULTS["ignore_patterns"])
        if not isinstance(self.IGNORE_PATTERNS, list):
            self.IGNORE_PATTERNS = []
        self.IGNORE_PATTERNS = [str(p) for p in self.IGNORE_PATTERNS]

        self.CONTEXT_LINES = _get("PATCHVIEW_CONTEXT_LINES",
                                  diff_section.get("context_lines"),
                                  _DEFAULTS["context_lines"], cast=int)
        if self.CONTEXT_LINES < 0:
            self.CONTEXT_LINES = 0

        # Git integration
        self.GIT_ENABLED = _get_bool("PATCHVIEW_GIT", git_section.get("enabled"),
                                     _DEFAULTS["git_enabled"])
        self.GIT_BASELINE = _get_choice("PATCHVIEW_GIT_BASELINE",
                                        git_section.get("baseline"),
                                        _DEFAULTS["git_baseline"],
                                        _GIT_BASELINES)
        self.GIT_CACHE_TTL = _get(None, git_section.get("cache_ttl_seconds"),
                                  _DEFAULTS["git_cache_ttl_seconds"], cast=float)

    @classmethod
    def load(cls, config_path: str | None = None) -> "Config":
        """Load config from YAML file (if found) + env vars + defaults."""
        path = _find_config_file(config_path)
        yaml_data = _load_yaml(path) if path else {}
        return cls(yaml_data)
