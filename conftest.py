import pytest

CONFIG_ENV_KEYS = [
    "LLM_PROVIDER", "LLM_BASE_URL", "LLM_API_KEY", "OPENAI_API_KEY", "LLM_MODEL",
    "LLM_TIMEOUT", "GAME_API_URL", "GAME_API_TIMEOUT", "SAVE_BACKEND",
    "SUPABASE_URL", "SUPABASE_ANON_KEY", "SAVE_TABLE", "DATA_DIR", "HOST",
    "BACKEND_PORT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's shell and .env settings out of every test."""
    for key in CONFIG_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    yield
