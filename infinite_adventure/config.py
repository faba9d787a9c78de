"""Runtime configuration (LLM connection, game API, save backend).

Values come from the environment, with a ``.env`` file at the repo root
loaded first. get_config() returns the defaults merged with whatever is set.
"""

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

ROOT = Path(__file__).parent.parent

_CONFIG_DEFAULTS: dict[str, Any] = {
    "llm_provider": "openai",
    "llm_base_url": "https://api.openai.com",
    "llm_api_key": "",
    "llm_model": "gpt-4o",
    "llm_timeout": 120.0,
    "game_api_url": "http://localhost:13013",
    "game_api_timeout": 120.0,
    "save_backend": "",
    "supabase_url": "",
    "supabase_anon_key": "",
    "save_table": "game_saves",
    "data_dir": "data",
    "host": "0.0.0.0",
    "backend_port": 13013,
}

_FLOAT_KEYS = {"llm_timeout", "game_api_timeout"}
_INT_KEYS = {"backend_port"}


def load_env() -> None:
    load_dotenv(ROOT / ".env")


def get_config() -> dict[str, Any]:
    """Read config, returning defaults merged with environment values."""
    config = dict(_CONFIG_DEFAULTS)
    for key in config:
        raw = os.getenv(key.upper())
        if raw is None or raw == "":
            continue
        if key in _FLOAT_KEYS:
            config[key] = float(raw)
        elif key in _INT_KEYS:
            config[key] = int(raw)
        else:
            config[key] = raw
    if not config["llm_api_key"]:
        config["llm_api_key"] = os.getenv("OPENAI_API_KEY", "")
    if not config["save_backend"]:
        config["save_backend"] = "supabase" if config["supabase_url"] else "none"
    return config
