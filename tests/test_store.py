from datetime import timedelta

import pytest

from clinicalgoto import models, schemas
from clinicalgoto.errors import ConflictError, NotFoundError
from clinicalgoto.store import normalize_email


def _record(email: str, consent: bool = True, name: str = "Jane Doe") -> schemas.NewRegistrant:
    return schemas.NewRegistrant(
        full_name=name,
        email=email,
        phone="5551234567",
        condition="Diabetes",
        location="Boston",
        consent=consent,
    )


def test_normalize_email_trims_and_casefolds():
    assert normalize_email("  Jane.Doe@Example.COM ") == "jane.doe@example.com"


def test_insert_assigns_id_and_timestamps(store):
    registrant = store.insert(_record("Jane.Doe@Example.com"))

    assert registrant.id is not None
    assert registrant.email == "jane.doe@example.com"
    assert registrant.is_active is True
    assert registrant.registered_at is not None
    assert registrant.updated_at is not None


def test_insert_rejects_second_active_row_for_same_email(store):
    """The partial unique index rejects a duplicate even without a pre-check."""
    store.insert(_record("jane@example.com"))

    with pytest.raises(ConflictError):
        store.insert(_record(" JANE@example.com "))

    assert len(store.list_active()) == 1


def test_find_active_by_email_uses_same_normalization(store):
    store.insert(_record("jane@example.com"))

    found = store.find_active_by_email("  Jane@EXAMPLE.com")
    assert found is not None
    assert found.email == "jane@example.com"
    assert store.find_active_by_email("nobody@example.com") is None


def test_deactivate_hides_registrant_and_frees_email(store):
    original = store.insert(_record("jane@example.com"))
    created_updated_at = original.updated_at

    deactivated = store.deactivate("Jane@Example.com")
    assert deactivated.is_active is False
    assert deactivated.updated_at >= created_updated_at
    assert store.find_active_by_email("jane@example.com") is None

    again = store.insert(_record("jane@example.com"))
    assert again.id != original.id
    assert again.is_active is True


def test_deactivate_unknown_email_raises_not_found(store):
    with pytest.raises(NotFoundError):
        store.deactivate("ghost@example.com")


def test_deactivate_twice_raises_not_found(store):
    store.insert(_record("jane@example.com"))
    store.deactivate("jane@example.com")

    with pytest.raises(NotFoundError):
        store.deactivate("jane@example.com")


def test_list_active_newest_first(store, db_session):
    older = store.insert(_record("older@example.com"))
    newer = store.insert(_record("newer@example.com"))
    hidden = store.insert(_record("hidden@example.com"))
    older.registered_at = models.utcnow() - timedelta(days=1)
    db_session.commit()
    store.deactivate(hidden.email)

    emails = [r.email for r in store.list_active()]
    assert emails == [newer.email, older.email]


def test_stats_count_active_rows_only(store, db_session):
    for idx in range(3):
        store.insert(_record(f"active{idx}@example.com", consent=idx != 0))
    for idx in range(2):
        store.insert(_record(f"gone{idx}@example.com"))
        store.deactivate(f"gone{idx}@example.com")

    old = store.find_active_by_email("active2@example.com")
    old.registered_at = models.utcnow() - timedelta(days=10)
    db_session.commit()

    stats = store.stats()
    assert stats.total == 3
    assert stats.consented == 2
    assert stats.recent == 2


def test_stats_on_empty_store(store):
    stats = store.stats()
    assert (stats.total, stats.recent, stats.consented) == (0, 0, 0)
