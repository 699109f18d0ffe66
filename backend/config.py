"""Service configuration: data directory and settings in config.json.

Layout:
  data/
    config.json        Service settings (oracle mode, LLM connection, autosave)
    progress/          Saved sessions, one JSON file per user

get_config() returns defaults merged with stored values. update_config()
applies partial updates: llm_connection merged key-by-key, scalars
overwritten, unknown keys ignored.
"""

import json
import os
from pathlib import Path
from typing import Any

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"

_data_dir: Path | None = None

ORACLE_MODES = ("scripted", "llm")

_CONFIG_DEFAULTS: dict[str, Any] = {
    "oracle": "scripted",
    "llm_connection": {
        "provider_url": "",
        "api_key": "",
        "provider_format": "koboldcpp",
        "model": "",
    },
    "autosave": True,
}


def init_data_dir(path: Path | None = None) -> Path:
    """Point the service at a data directory (DATA_DIR env var by default)."""
    global _data_dir
    _data_dir = path or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    _data_dir.mkdir(parents=True, exist_ok=True)
    return _data_dir


def data_dir() -> Path:
    assert _data_dir is not None, "Call init_data_dir() before using the config"
    return _data_dir


def campaign_url() -> str:
    """Remote content service URL, or empty for the bundled campaign only."""
    return os.getenv("CAMPAIGN_URL", "")


def _config_path() -> Path:
    return data_dir() / "config.json"


def _merge(config: dict[str, Any], fields: dict[str, Any]) -> None:
    if fields.get("oracle") in ORACLE_MODES:
        config["oracle"] = fields["oracle"]
    if isinstance(fields.get("llm_connection"), dict):
        for key, value in fields["llm_connection"].items():
            if key in config["llm_connection"]:
                config["llm_connection"][key] = value
    if "autosave" in fields:
        config["autosave"] = bool(fields["autosave"])


def get_config() -> dict[str, Any]:
    """Read config, returning defaults merged with stored values."""
    config: dict[str, Any] = json.loads(json.dumps(_CONFIG_DEFAULTS))
    path = _config_path()
    if path.is_file():
        _merge(config, json.loads(path.read_text()))
    return config


def update_config(fields: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into config and persist. Returns full config."""
    config = get_config()
    _merge(config, fields)
    _config_path().write_text(json.dumps(config, indent=2))
    return config
