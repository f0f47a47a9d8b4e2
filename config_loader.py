from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Tuple

from dotenv import load_dotenv

# Template values shipped in config.secrets.example.json and common stand-ins.
_PLACEHOLDER_TOKENS = frozenset({"CHANGEME", "REPLACE_ME"})
MISSING = "<missing>"


def _read_object(path: Path) -> Dict[str, Any]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path.name} must hold a JSON object, got {type(data).__name__}")
    return data


def _overlay(target: Dict[str, Any], layer: Dict[str, Any]) -> None:
    # Nested sections merge key by key; anything else in the layer replaces.
    for key, value in layer.items():
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _overlay(current, value)
        else:
            target[key] = value


def load_config_with_secrets(
    base_dir: Path,
    config_name: str = "config.json",
    secrets_name: str = "config.secrets.json",
) -> Tuple[Dict[str, Any], Path, Path]:
    """Committed settings with the server-only secrets file laid over them.

    Returns (merged, config_path, secrets_path). The secrets file is optional
    because the token can also come from the environment.
    """
    config_path = Path(base_dir) / config_name
    secrets_path = Path(base_dir) / secrets_name
    if not config_path.is_file():
        raise FileNotFoundError(f"Missing config file: {config_path}")

    merged = _read_object(config_path)
    if secrets_path.is_file():
        _overlay(merged, _read_object(secrets_path))
    return merged, config_path, secrets_path


def resolve_bot_token(config: Dict[str, Any], base_dir: Path, env_var: str = "TOKEN") -> str:
    """bot_token from the merged config, else `env_var` (after loading base_dir/.env)."""
    configured = str(config.get("bot_token") or "").strip()
    if not is_placeholder_secret(configured):
        return configured
    # Variables already set in the process take precedence over .env.
    load_dotenv(Path(base_dir) / ".env")
    return os.environ.get(env_var, "").strip()


def is_placeholder_secret(value: Any) -> bool:
    text = "" if value is None else str(value).strip().upper()
    return not text or text.startswith("PUT_") or text.endswith("_HERE") or text in _PLACEHOLDER_TOKENS


def mask_secret(value: Any, show_last: int = 4) -> str:
    """Stars with only the last `show_last` characters visible."""
    text = "" if value is None else str(value)
    if not text:
        return MISSING
    visible = text[-show_last:] if len(text) > show_last else ""
    return visible.rjust(len(text), "*")
