from __future__ import annotations

import dataclasses

import pytest

from crm_bulk.config.entities import ACCOUNTS, CONTACTS, LEADS
from crm_bulk.db.repository import RowWriteError, SessionExpiredError, StoreRecordRepository
from crm_bulk.store.base import RemoteQueryError, StoreError
from crm_bulk.store.memory import InMemoryRowStore

USER_ID = "11111111-1111-4111-8111-111111111111"
ROW_ID = "44444444-4444-4444-8444-444444444444"


def _repo(rows=None, **store_kwargs) -> tuple[StoreRecordRepository, InMemoryRowStore]:
    store = InMemoryRowStore({"accounts": rows or []}, **store_kwargs)
    return StoreRecordRepository(store, ACCOUNTS, USER_ID), store


def test_find_existing_by_natural_key_case_insensitive():
    repo, _ = _repo([{"id": ROW_ID, "account_name": "Acme Corp"}])
    found = repo.find_existing({"account_name": "  ACME corp "})
    assert found is not None and found["id"] == ROW_ID


def test_find_existing_treats_like_wildcards_literally():
    repo, _ = _repo([{"id": ROW_ID, "account_name": "Acme Corp"}])
    assert repo.find_existing({"account_name": "Acme%"}) is None
    assert repo.find_existing({"account_name": "Acme_Corp"}) is None


def test_find_existing_case_sensitive_when_configured():
    entity = dataclasses.replace(ACCOUNTS, natural_key_case_insensitive=False)
    store = InMemoryRowStore({"accounts": [{"id": ROW_ID, "account_name": "Acme"}]})
    repo = StoreRecordRepository(store, entity, USER_ID)
    assert repo.find_existing({"account_name": "acme"}) is None
    assert repo.find_existing({"account_name": "Acme"})["id"] == ROW_ID


def test_find_existing_falls_back_to_uuid_id():
    repo, _ = _repo([{"id": ROW_ID, "account_name": "Old Name"}])
    found = repo.find_existing({"account_name": "New Name", "id": ROW_ID})
    assert found["account_name"] == "Old Name"


def test_find_existing_none_for_new_record():
    repo, _ = _repo()
    assert repo.find_existing({"account_name": "Nobody", "id": "zcrm_123"}) is None


def test_find_existing_lookup_failure_raises_remote_error():
    repo, store = _repo()
    store.inject_error("accounts", "select", StoreError("statement timeout", code="57014"))
    with pytest.raises(RemoteQueryError, match="statement timeout"):
        repo.find_existing({"account_name": "Acme"})


@pytest.mark.parametrize(
    "error",
    [
        StoreError("JWT expired", code="PGRST301"),
        StoreError("password authentication failed", code="28P01"),
        StoreError("user not authenticated"),
    ],
)
def test_auth_errors_raise_session_expired(error):
    repo, store = _repo()
    store.inject_error("accounts", "select", error)
    with pytest.raises(SessionExpiredError):
        repo.find_existing({"account_name": "Acme"})


def test_create_stamps_user_and_drops_foreign_id():
    repo, store = _repo()
    created = repo.create({"account_name": "Acme", "id": "zcrm_2845000000123"})
    assert created["created_by"] == USER_ID
    assert created["modified_by"] == USER_ID
    assert created["id"] != "zcrm_2845000000123"
    assert store.rows("accounts")[0]["account_name"] == "Acme"


def test_create_keeps_valid_uuid_id():
    repo, _ = _repo()
    assert repo.create({"account_name": "Acme", "id": ROW_ID})["id"] == ROW_ID


def test_create_constraint_violation_message():
    repo, _ = _repo(not_null={"accounts": ["phone"]})
    with pytest.raises(RowWriteError, match=r"^Insert failed - Constraint violation: null value in column \"phone\""):
        repo.create({"account_name": "Acme"})


def test_create_uuid_error_message():
    repo, store = _repo()
    store.inject_error("accounts", "insert", StoreError('invalid input syntax for type uuid: "abc"', code="22P02"))
    with pytest.raises(RowWriteError, match="^Insert failed - Invalid UUID format in record$"):
        repo.create({"account_name": "Acme"})


def test_update_sets_modified_fields_and_keeps_id():
    repo, store = _repo([{"id": ROW_ID, "account_name": "Acme", "phone": "1"}])
    existing = repo.find_existing({"account_name": "acme"})
    repo.update(existing, {"account_name": "acme", "phone": "2", "id": "zcrm_1"})
    row = store.rows("accounts")[0]
    assert row["id"] == ROW_ID
    assert row["phone"] == "2"
    assert row["modified_by"] == USER_ID
    assert row["modified_time"]


def test_update_failure_raises_row_write_error():
    repo, store = _repo([{"id": ROW_ID, "account_name": "Acme"}])
    store.inject_error("accounts", "update", StoreError("permission denied", code="42501"))
    with pytest.raises(RowWriteError, match="^Update failed - permission denied$"):
        repo.update({"id": ROW_ID}, {"account_name": "Acme"})


def test_contacts_match_by_email():
    store = InMemoryRowStore({"contacts": [{"id": ROW_ID, "email": "Jane@Example.com"}]})
    repo = StoreRecordRepository(store, CONTACTS, USER_ID)
    assert repo.find_existing({"email": "jane@example.com"})["id"] == ROW_ID


@pytest.mark.parametrize("email", [None, "", "   "])
def test_contacts_without_email_match_by_name(email):
    store = InMemoryRowStore({"contacts": [{"id": ROW_ID, "contact_name": "Alice Smith", "email": None}]})
    repo = StoreRecordRepository(store, CONTACTS, USER_ID)
    assert repo.find_existing({"contact_name": "alice smith", "email": email})["id"] == ROW_ID


def test_email_present_does_not_fall_back_to_name():
    # 同名別人: email があれば名前では照合しない
    store = InMemoryRowStore({"contacts": [{"id": ROW_ID, "contact_name": "Alice Smith", "email": "a@one.example"}]})
    repo = StoreRecordRepository(store, CONTACTS, USER_ID)
    assert repo.find_existing({"contact_name": "Alice Smith", "email": "a@two.example"}) is None


def test_leads_without_email_match_by_name():
    store = InMemoryRowStore({"leads": [{"id": ROW_ID, "lead_name": "Bob Jones"}]})
    repo = StoreRecordRepository(store, LEADS, USER_ID)
    assert repo.find_existing({"lead_name": "Bob Jones"})["id"] == ROW_ID


def test_update_stamps_configured_modified_time_column():
    deals = dataclasses.replace(
        ACCOUNTS, name="deals", table="deals", natural_key="deal_name",
        modified_time_field="modified_at",
    )
    store = InMemoryRowStore({"deals": [{"id": ROW_ID, "deal_name": "D1", "modified_at": "2020-01-01T00:00:00+00:00"}]})
    repo = StoreRecordRepository(store, deals, USER_ID)
    repo.update({"id": ROW_ID}, {"deal_name": "D1", "stage": "Won"})
    row = store.rows("deals")[0]
    assert "modified_time" not in row
    assert row["modified_at"] != "2020-01-01T00:00:00+00:00"
    assert row["stage"] == "Won"


def test_insufficient_privilege_is_row_error_not_session_loss():
    repo, store = _repo()
    store.inject_error("accounts", "insert", StoreError("new row violates row-level security policy", code="42501"))
    with pytest.raises(RowWriteError):
        repo.create({"account_name": "Acme"})
