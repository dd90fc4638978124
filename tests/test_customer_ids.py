from datetime import datetime

import pytest
from sqlalchemy import event

from opsportal.errors import ConflictError, InvalidArgumentError
from opsportal.models.models import CustomerIdConfig
from opsportal.services import customer_ids


def test_new_prefix_starts_at_one_and_increments(db):
    customer_ids.add_custom_prefix(db, "VIP")

    assert customer_ids.generate_customer_id(db, "VIP") == "VIP0001"
    assert customer_ids.generate_customer_id(db, "VIP") == "VIP0002"

    db.expire_all()
    config = db.query(CustomerIdConfig).filter_by(prefix="VIP").one()
    assert config.next_sequence == 3


def test_default_prefix_is_created_on_first_use(db):
    assert customer_ids.generate_customer_id(db) == "CUS0001"
    assert customer_ids.generate_customer_id(db, "") == "CUS0002"

    db.expire_all()
    config = db.query(CustomerIdConfig).filter_by(prefix="CUS").one()
    assert config.next_sequence == 3
    assert config.is_active is True


def test_unknown_prefix_is_created_on_first_use(db):
    assert customer_ids.generate_customer_id(db, "NEW") == "NEW0001"
    assert customer_ids.list_active_prefixes(db) == ["NEW"]


def test_prefixes_count_independently(db):
    customer_ids.generate_customer_id(db, "AB")
    customer_ids.generate_customer_id(db, "AB")
    assert customer_ids.generate_customer_id(db, "XYZ") == "XYZ0001"
    assert customer_ids.generate_customer_id(db, "AB") == "AB0003"


def test_sequence_grows_past_four_digits(db):
    db.add(CustomerIdConfig(prefix="BIG", next_sequence=10000, is_active=True))
    db.commit()
    assert customer_ids.generate_customer_id(db, "BIG") == "BIG10000"


@pytest.mark.parametrize("prefix", ["A", "ABCDEF", "ab", "Ab1", "A-B", "12"])
def test_add_prefix_rejects_malformed(db, prefix):
    with pytest.raises(InvalidArgumentError):
        customer_ids.add_custom_prefix(db, prefix)
    assert db.query(CustomerIdConfig).count() == 0


def test_generate_rejects_malformed_prefix(db):
    with pytest.raises(InvalidArgumentError):
        customer_ids.generate_customer_id(db, "vip")
    assert db.query(CustomerIdConfig).count() == 0


def test_add_prefix_twice_conflicts(db):
    customer_ids.add_custom_prefix(db, "VIP")
    with pytest.raises(ConflictError):
        customer_ids.add_custom_prefix(db, "VIP")
    assert db.query(CustomerIdConfig).count() == 1


def test_active_prefixes_in_creation_order(db):
    db.add_all([
        CustomerIdConfig(prefix="ZED", is_active=True, created_at=datetime(2026, 1, 1)),
        CustomerIdConfig(prefix="ABC", is_active=True, created_at=datetime(2026, 2, 1)),
        CustomerIdConfig(prefix="OLD", is_active=False, created_at=datetime(2025, 12, 1)),
    ])
    db.commit()

    assert customer_ids.list_active_prefixes(db) == ["ZED", "ABC"]


def test_format_customer_id():
    assert customer_ids.format_customer_id("CUS", 42) == "CUS0042"


def _insert_from_other_session(session_factory, db, prefix):
    """Commit the prefix from a second session right before db's next flush."""

    def before_flush(session, flush_context, instances):
        other = session_factory()
        try:
            other.add(CustomerIdConfig(prefix=prefix, next_sequence=1, is_active=True))
            other.commit()
        finally:
            other.close()

    event.listen(db, "before_flush", before_flush, once=True)


def test_add_prefix_losing_insert_race_conflicts(db, session_factory):
    _insert_from_other_session(session_factory, db, "VIP")

    with pytest.raises(ConflictError):
        customer_ids.add_custom_prefix(db, "VIP")

    db.expire_all()
    assert db.query(CustomerIdConfig).filter_by(prefix="VIP").count() == 1


def test_generate_uses_row_created_concurrently(db, session_factory, monkeypatch):
    allocate = customer_ids._allocate
    calls = []

    def allocate_then_lose_race(session, prefix):
        sequence = allocate(session, prefix)
        if not calls:
            # The other session creates the prefix between the miss and our insert
            other = session_factory()
            try:
                other.add(CustomerIdConfig(prefix=prefix, next_sequence=1, is_active=True))
                other.commit()
            finally:
                other.close()
        calls.append(sequence)
        return sequence

    monkeypatch.setattr(customer_ids, "_allocate", allocate_then_lose_race)

    assert customer_ids.generate_customer_id(db, "NEW") == "NEW0001"
    assert calls == [None, 1]

    db.expire_all()
    config = db.query(CustomerIdConfig).filter_by(prefix="NEW").one()
    assert config.next_sequence == 2
