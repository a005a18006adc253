"""Root conftest.py — loads .env and points file outputs at a scratch directory."""
import os
import tempfile

import pytest
from dotenv import load_dotenv

load_dotenv()

_scratch = tempfile.mkdtemp(prefix="ticketflow-tests-")
os.environ["SQLITE_DB_PATH"] = os.path.join(_scratch, "ticketflow.db")
os.environ["ACTIVITY_LOG_PATH"] = os.path.join(_scratch, "activity.jsonl")
os.environ["LLM_LOG_PATH"] = os.path.join(_scratch, "completion_calls.jsonl")


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Clear the lru_cache on get_settings so monkeypatch.setenv takes effect."""
    from config.settings import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
