import os
import sys
import tempfile
from pathlib import Path

# Ensure repository root is on sys.path so 'import nathia' works
ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Settings and the engine are read at import time; pin them before any app import
TEST_DB = Path(tempfile.gettempdir()) / "nathia_test.db"
TEST_DB.unlink(missing_ok=True)
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB}"
os.environ["GEMINI_API_KEY"] = ""
os.environ["QA_API_URL"] = ""
os.environ["MODERATION_WEBHOOK_URL"] = ""
os.environ["NATHIA_CONFIG_FILE"] = ""

# Force pytest-anyio to use asyncio backend (avoid requiring 'trio')
import pytest


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _fresh_singletons():
    from nathia.app.core.circuit_breaker import reset_circuit_breakers
    from nathia.app.core.config import get_config_store
    from nathia.app.safety import moderation, triage

    reset_circuit_breakers()
    get_config_store.cache_clear()
    triage._default_engine = None
    moderation._default_engine = None
    yield
    reset_circuit_breakers()


@pytest.fixture
def db():
    from nathia.app.db.base import Base, SessionLocal, engine, init_db

    init_db()
    yield SessionLocal
    SessionLocal.remove()
    Base.metadata.drop_all(bind=engine)
