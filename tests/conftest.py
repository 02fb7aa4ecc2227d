# Shared pytest fixtures
from __future__ import annotations
import logging
import tempfile
from pathlib import Path
import pytest

from crm_bulk.config.entities import ACCOUNTS, CONTACTS, LEADS
from crm_bulk.logging.init import LOGGER_NAME, reset_logging
from crm_bulk.services.events import EventBus
from crm_bulk.store.memory import InMemoryRowStore

IMPORTER_ID = "11111111-1111-4111-8111-111111111111"
JANE_ID = "22222222-2222-4222-8222-222222222222"
BOB_ID = "33333333-3333-4333-8333-333333333333"


@pytest.fixture(autouse=True)
def _clean_crm_logger():
    # CLI テストが propagate=False にするので毎回戻す (caplog 用)
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for h in logger.handlers[:]:
        logger.removeHandler(h)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
        monkeypatch.delenv("CRM_USER_ID", raising=False)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """timezone: UTC
fetch_chunk_size: 1000
error_sample_size: 3
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
entities:
  accounts:
    header_aliases:
      "customer name": account_name
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "pipeline.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def accounts():
    return ACCOUNTS


@pytest.fixture()
def contacts():
    return CONTACTS


@pytest.fixture()
def leads():
    return LEADS


@pytest.fixture()
def store() -> InMemoryRowStore:
    return InMemoryRowStore()


@pytest.fixture()
def profiles_store() -> InMemoryRowStore:
    return InMemoryRowStore({
        "profiles": [
            {"id": JANE_ID, "full_name": "Jane Doe", "email": "jane.doe@example.com"},
            {"id": BOB_ID, "full_name": "Bob Smith", "email": "bob@example.com"},
        ]
    })


@pytest.fixture()
def bus() -> EventBus:
    return EventBus()


@pytest.fixture()
def importer_id() -> str:
    return IMPORTER_ID
