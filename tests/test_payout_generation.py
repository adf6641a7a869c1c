"""Tests for generate_payout() in fleetpay/services/payouts.py

Run with:  pytest tests/test_payout_generation.py -v
"""
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from fleetpay.repositories import payout_repo
from fleetpay.services import payouts as payout_service
from fleetpay.services.errors import DuplicatePayout, InvalidAmount, NotFound, StorageError
from fleetpay.services.payouts import generate_payout, payout_window

from helpers import add_deduction, add_driver, add_trip, at


DAY = date(2025, 1, 10)


def _payout_count(db) -> int:
    return int(db.execute(text("SELECT COUNT(*) FROM payouts")).scalar_one())


def _applied_to(db, deduction_id):
    return db.execute(
        text("SELECT applied_to_payout_id FROM deductions WHERE id = :id"),
        {"id": deduction_id},
    ).scalar_one()


# ── Aggregation ───────────────────────────────────────────────────────────────

def test_end_to_end_two_trips(db):
    add_driver(db)
    add_trip(db, 1, at("2025-01-10", "08:00:00"), 1500, 150)
    add_trip(db, 1, at("2025-01-10", "17:30:00"), 1000, 100)

    payout = generate_payout(db, 1, DAY)

    assert payout.revenue_amount == Decimal("2500")
    assert payout.commission_amount == Decimal("250")
    assert payout.incentive_amount == Decimal("175")
    assert payout.deduction_amount == Decimal("0")
    assert payout.net_payout == Decimal("850")
    assert payout.approval_status == "pending"
    assert payout.payment_status == "pending"
    assert payout.payout_date == DAY


def test_no_trips_gives_zero_payout(db):
    add_driver(db)

    payout = generate_payout(db, 1, DAY)

    assert payout.revenue_amount == 0
    assert payout.net_payout == 0
    assert payout.approval_status == "pending"
    assert _payout_count(db) == 1


def test_only_completed_trips_count(db):
    add_driver(db)
    add_trip(db, 1, at("2025-01-10"), 1000, 100)
    add_trip(db, 1, at("2025-01-10"), 5000, 500, status="cancelled")
    add_trip(db, 1, at("2025-01-10"), 5000, 500, status="disputed")

    payout = generate_payout(db, 1, DAY)

    assert payout.revenue_amount == Decimal("1000")
    assert payout.net_payout == Decimal("300")


def test_null_amounts_count_as_zero(db):
    add_driver(db)
    add_trip(db, 1, at("2025-01-10"), None, None)
    add_trip(db, 1, at("2025-01-10"), 800, None)

    payout = generate_payout(db, 1, DAY)

    assert payout.revenue_amount == Decimal("800")
    assert payout.commission_amount == 0


def test_other_drivers_trips_ignored(db):
    add_driver(db)
    add_driver(db, driver_id=2, name="Anil", phone="9000000002")
    add_trip(db, 2, at("2025-01-10"), 4000, 400)

    payout = generate_payout(db, 1, DAY)

    assert payout.revenue_amount == 0


def test_day_window_edges(db):
    add_driver(db)
    add_trip(db, 1, at("2025-01-10", "00:00:00"), 100, 0)
    add_trip(db, 1, datetime(2025, 1, 10, 23, 59, 59, 500000), 200, 0)
    add_trip(db, 1, at("2025-01-09", "23:59:59"), 1000, 0)
    add_trip(db, 1, at("2025-01-11", "00:00:00"), 1000, 0)

    payout = generate_payout(db, 1, DAY)

    assert payout.revenue_amount == Decimal("300")


def test_payout_window_uses_local_midnight():
    start, end = payout_window(DAY, "Asia/Kolkata")
    assert start == datetime(2025, 1, 9, 18, 30, tzinfo=timezone.utc)
    assert end == datetime(2025, 1, 10, 18, 30, tzinfo=timezone.utc)


def test_payout_window_defaults_to_settings():
    assert payout_window(DAY) == (
        datetime(2025, 1, 10, tzinfo=timezone.utc),
        datetime(2025, 1, 11, tzinfo=timezone.utc),
    )


def test_unknown_driver(db):
    with pytest.raises(NotFound):
        generate_payout(db, 404, DAY)
    assert _payout_count(db) == 0


# ── Deductions ────────────────────────────────────────────────────────────────

def test_deductions_are_subtracted_and_stamped(db):
    add_driver(db)
    add_trip(db, 1, at("2025-01-10"), 3000, 300)
    d1 = add_deduction(db, 1, 200)
    d2 = add_deduction(db, 1, 100)

    payout = generate_payout(db, 1, DAY)

    assert payout.deduction_amount == Decimal("300")
    assert payout.net_payout == Decimal("900")
    assert sorted(payout.applied_deduction_ids) == sorted([d1, d2])
    assert _applied_to(db, d1) == payout.id
    assert _applied_to(db, d2) == payout.id


def test_net_payout_never_negative(db):
    add_driver(db)
    add_trip(db, 1, at("2025-01-10"), 1000, 100)
    add_deduction(db, 1, 500)

    payout = generate_payout(db, 1, DAY)

    assert payout.deduction_amount == Decimal("500")
    assert payout.net_payout == 0


def test_only_approved_unapplied_deductions_used(db):
    add_driver(db)
    add_trip(db, 1, at("2025-01-10"), 1000, 100)
    pending = add_deduction(db, 1, 50, status="pending")
    rejected = add_deduction(db, 1, 60, status="rejected")
    approved = add_deduction(db, 1, 70)

    payout = generate_payout(db, 1, DAY)

    assert payout.deduction_amount == Decimal("70")
    assert _applied_to(db, approved) == payout.id
    assert _applied_to(db, pending) is None
    assert _applied_to(db, rejected) is None


def test_deductions_applied_once_across_generations(db):
    add_driver(db)
    add_trip(db, 1, at("2025-01-10"), 1000, 100)
    add_trip(db, 1, at("2025-01-11"), 1000, 100)
    add_deduction(db, 1, 100)

    first = generate_payout(db, 1, DAY)
    second = generate_payout(db, 1, date(2025, 1, 11))

    assert first.deduction_amount == Decimal("100")
    assert first.net_payout == Decimal("200")
    assert second.deduction_amount == 0
    assert second.net_payout == Decimal("300")


def test_negative_deduction_rejected(db):
    add_driver(db)
    add_deduction(db, 1, -10)

    with pytest.raises(InvalidAmount):
        generate_payout(db, 1, DAY)
    assert _payout_count(db) == 0


# ── Duplicates and atomicity ──────────────────────────────────────────────────

def test_duplicate_generation_rejected(db):
    add_driver(db)
    add_trip(db, 1, at("2025-01-10"), 1000, 100)
    deduction_id = add_deduction(db, 1, 100)

    first = generate_payout(db, 1, DAY)
    add_deduction(db, 1, 40)
    with pytest.raises(DuplicatePayout):
        generate_payout(db, 1, DAY)

    assert _payout_count(db) == 1
    assert _applied_to(db, deduction_id) == first.id
    applied = db.execute(
        text("SELECT COUNT(*) FROM deductions WHERE applied_to_payout_id IS NOT NULL")
    ).scalar_one()
    assert int(applied) == 1


def test_conflicting_insert_reported_as_duplicate(db, monkeypatch):
    add_driver(db)
    monkeypatch.setattr(payout_repo, "insert_payout", lambda *a, **kw: None)

    with pytest.raises(DuplicatePayout):
        generate_payout(db, 1, DAY)


def test_storage_failure_writes_nothing(db, monkeypatch):
    add_driver(db)
    add_trip(db, 1, at("2025-01-10"), 1000, 100)
    deduction_id = add_deduction(db, 1, 100)

    def _boom(*args, **kwargs):
        raise SQLAlchemyError("connection lost")

    monkeypatch.setattr(payout_repo, "stamp_deductions", _boom)

    with pytest.raises(StorageError):
        generate_payout(db, 1, DAY)

    assert _payout_count(db) == 0
    assert _applied_to(db, deduction_id) is None


def test_deduction_consumed_concurrently_rolls_back(db, monkeypatch):
    add_driver(db)
    add_deduction(db, 1, 100)
    monkeypatch.setattr(payout_repo, "stamp_deductions", lambda *a, **kw: 0)

    with pytest.raises(StorageError):
        generate_payout(db, 1, DAY)

    assert _payout_count(db) == 0


def test_logs_creation(db, caplog):
    add_driver(db)
    with caplog.at_level("INFO", logger=payout_service.__name__):
        payout = generate_payout(db, 1, DAY)
    assert f"payout_generate: created payout={payout.id} driver=1" in caplog.text
