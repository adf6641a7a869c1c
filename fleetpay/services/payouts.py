"""
Payout generation and lifecycle service.

Generation flow per (driver, payout_date), in one transaction:
  1. Lock the driver row (NotFound if missing)
  2. Reject a duplicate payout for the same day
  3. Sum completed trips whose start time falls in the payout day
  4. Apply the commission schedule
  5. Snapshot approved, unapplied deductions
  6. Insert the payout (pending/pending)
  7. Stamp the snapshot deductions with the new payout id
  8. Commit; any DB failure rolls back everything
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any

import pytz
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from fleetpay.core.auth import AuthContext
from fleetpay.core.config import settings
from fleetpay.logic.commission import (
    CommissionSchedule,
    calculate_commission_breakdown,
    calculate_net_payout,
)
from fleetpay.logic.money import ZERO, sum_amounts, to_decimal
from fleetpay.repositories import payout_repo
from fleetpay.services.errors import (
    DuplicatePayout,
    Forbidden,
    InvalidAmount,
    InvalidState,
    NotFound,
    StorageError,
)

logger = logging.getLogger(__name__)

APPROVAL_ACTIONS = {"approve": "approved", "reject": "rejected"}
PAYMENT_OUTCOMES = ("paid", "failed")


# ---------------------------------------------------------------------------
# Data shapes
# ---------------------------------------------------------------------------

@dataclass
class Payout:
    id: int
    driver_id: int
    payout_date: date
    revenue_amount: Decimal
    commission_amount: Decimal
    incentive_amount: Decimal
    deduction_amount: Decimal
    net_payout: Decimal
    approval_status: str
    payment_status: str
    approved_by: str | None = None
    approved_at: datetime | None = None
    payment_reference: str | None = None
    created_at: datetime | None = None
    driver_name: str | None = None
    applied_deduction_ids: list[int] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Payout":
        return cls(
            id=int(row["id"]),
            driver_id=int(row["driver_id"]),
            payout_date=row["payout_date"],
            revenue_amount=to_decimal(row["revenue_amount"]),
            commission_amount=to_decimal(row["commission_amount"]),
            incentive_amount=to_decimal(row["incentive_amount"]),
            deduction_amount=to_decimal(row["deduction_amount"]),
            net_payout=to_decimal(row["net_payout"]),
            approval_status=row["approval_status"],
            payment_status=row["payment_status"],
            approved_by=row.get("approved_by"),
            approved_at=row.get("approved_at"),
            payment_reference=row.get("payment_reference"),
            created_at=row.get("created_at"),
            driver_name=row.get("driver_name"),
        )


@dataclass
class PayoutStats:
    total_count: int = 0
    total_net: Decimal = ZERO
    pending_count: int = 0
    approved_count: int = 0
    pending_amount: Decimal = ZERO
    approved_unpaid_amount: Decimal = ZERO
    paid_amount: Decimal = ZERO
    this_month_amount: Decimal = ZERO


# ---------------------------------------------------------------------------
# Payout day window
# ---------------------------------------------------------------------------

def payout_window(payout_date: date, tz_name: str | None = None) -> tuple[datetime, datetime]:
    """
    [local midnight, next local midnight) for payout_date, as aware UTC datetimes.
    Half-open so the final second of the day is included.
    """
    tz = pytz.timezone(tz_name or settings.PAYOUT_TIMEZONE)
    start_local = tz.localize(datetime.combine(payout_date, time.min))
    end_local = tz.localize(datetime.combine(payout_date + timedelta(days=1), time.min))
    return start_local.astimezone(pytz.utc), end_local.astimezone(pytz.utc)


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

def generate_payout(
    db: Session,
    driver_id: int,
    payout_date: date,
    schedule: CommissionSchedule | None = None,
) -> Payout:
    """
    Compute and persist the payout for one driver and one day.

    Raises NotFound, DuplicatePayout, InvalidAmount or StorageError. Nothing is
    written unless the payout insert and the deduction stamping both succeed.
    """
    schedule = schedule or CommissionSchedule.from_settings()

    try:
        driver = payout_repo.get_driver(db, driver_id, lock=True)
        if not driver:
            raise NotFound(f"driver {driver_id} not found")

        if payout_repo.get_payout_for_driver_date(db, driver_id, payout_date):
            raise DuplicatePayout(f"payout already exists for driver {driver_id} on {payout_date}")

        window_start, window_end = payout_window(payout_date)
        trips = payout_repo.get_completed_trip_amounts(db, driver_id, window_start, window_end)
        total_revenue = sum_amounts(t["fare_amount"] for t in trips)
        total_commission = sum_amounts(t["platform_commission"] for t in trips)

        breakdown = calculate_commission_breakdown(total_revenue, schedule)
        calculated_payout = breakdown.total_payout
        incentive_amount = calculated_payout - min(total_revenue, schedule.target_amount) * schedule.base_rate

        deductions = payout_repo.get_unapplied_deductions(db, driver_id, lock=True)
        for deduction in deductions:
            if to_decimal(deduction["amount"]) < ZERO:
                raise InvalidAmount(f"deduction {deduction['id']} has a negative amount")
        deduction_ids = [int(d["id"]) for d in deductions]
        total_deductions = sum_amounts(d["amount"] for d in deductions)

        net_payout = calculate_net_payout(calculated_payout, total_deductions)

        payout_id = payout_repo.insert_payout(
            db,
            driver_id=driver_id,
            payout_date=payout_date,
            revenue_amount=total_revenue,
            commission_amount=total_commission,
            incentive_amount=incentive_amount,
            deduction_amount=total_deductions,
            net_payout=net_payout,
        )
        if payout_id is None:
            raise DuplicatePayout(f"payout already exists for driver {driver_id} on {payout_date}")

        stamped = payout_repo.stamp_deductions(db, deduction_ids, payout_id)
        if stamped != len(deduction_ids):
            raise StorageError(
                f"deductions changed during generation for driver {driver_id}: "
                f"stamped {stamped} of {len(deduction_ids)}"
            )

        db.commit()
    except (NotFound, InvalidState, InvalidAmount, StorageError):
        db.rollback()
        raise
    except IntegrityError as exc:
        db.rollback()
        logger.warning("payout_generate: integrity error driver=%d date=%s: %s", driver_id, payout_date, exc)
        raise DuplicatePayout(f"payout already exists for driver {driver_id} on {payout_date}") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("payout_generate: DB error driver=%d date=%s: %s", driver_id, payout_date, exc)
        raise StorageError(f"could not store payout for driver {driver_id}") from exc

    logger.info(
        "payout_generate: created payout=%d driver=%d date=%s trips=%d revenue=%s deductions=%d net=%s",
        payout_id, driver_id, payout_date, len(trips), total_revenue, len(deduction_ids), net_payout,
    )
    payout = get_payout(db, payout_id)
    payout.applied_deduction_ids = deduction_ids
    return payout


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

def _require_manager(actor: AuthContext) -> None:
    if not actor.can_manage_payouts:
        raise Forbidden(f"role {actor.role.value} may not change payouts")


def _load_payout_row(db: Session, payout_id: int) -> dict[str, Any]:
    try:
        row = payout_repo.get_payout(db, payout_id)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("payout_read: DB error payout=%d: %s", payout_id, exc)
        raise StorageError(f"could not read payout {payout_id}") from exc
    if not row:
        raise NotFound(f"payout {payout_id} not found")
    return row


def _commit_transition(db: Session, payout_id: int, event: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("%s: DB error payout=%d: %s", event, payout_id, exc)
        raise StorageError(f"could not update payout {payout_id}") from exc


def set_approval(db: Session, payout_id: int, action: str, actor: AuthContext) -> Payout:
    """pending -> approved | rejected. Stamps approved_by/approved_at either way."""
    _require_manager(actor)
    new_status = APPROVAL_ACTIONS.get(action)
    if new_status is None:
        raise ValueError(f"unknown approval action: {action!r}")

    current = _load_payout_row(db, payout_id)
    if current["approval_status"] != "pending":
        raise InvalidState(f"payout {payout_id} is already {current['approval_status']}")

    try:
        updated = payout_repo.update_approval(
            db,
            payout_id,
            approval_status=new_status,
            approved_by=actor.user_id,
            approved_at=datetime.now(timezone.utc),
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError(f"could not update payout {payout_id}") from exc
    if updated != 1:
        # Lost a race with another reviewer
        db.rollback()
        raise InvalidState(f"payout {payout_id} is no longer pending")
    _commit_transition(db, payout_id, "payout_approval")

    logger.info("payout_approval: payout=%d status=%s actor=%s", payout_id, new_status, actor.user_id)
    return get_payout(db, payout_id)


def set_payment_status(
    db: Session,
    payout_id: int,
    status: str,
    actor: AuthContext,
    payment_reference: str | None = None,
) -> Payout:
    """pending -> paid | failed, only for approved payouts."""
    _require_manager(actor)
    if status not in PAYMENT_OUTCOMES:
        raise ValueError(f"unknown payment status: {status!r}")

    current = _load_payout_row(db, payout_id)
    if current["approval_status"] != "approved":
        raise InvalidState(f"payout {payout_id} is {current['approval_status']}, not approved")
    if current["payment_status"] != "pending":
        raise InvalidState(f"payout {payout_id} payment is already {current['payment_status']}")

    reference = (payment_reference or "").strip() or None
    try:
        updated = payout_repo.update_payment(
            db,
            payout_id,
            payment_status=status,
            payment_reference=reference if status == "paid" else None,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError(f"could not update payout {payout_id}") from exc
    if updated != 1:
        db.rollback()
        raise InvalidState(f"payout {payout_id} payment is no longer pending")
    _commit_transition(db, payout_id, "payout_payment")

    logger.info("payout_payment: payout=%d status=%s actor=%s ref=%s", payout_id, status, actor.user_id, reference)
    return get_payout(db, payout_id)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def get_payout(db: Session, payout_id: int) -> Payout:
    return Payout.from_row(_load_payout_row(db, payout_id))


def list_payouts(
    db: Session,
    approval_status: str | None = None,
    payout_date: date | None = None,
    driver_id: int | None = None,
) -> list[Payout]:
    try:
        rows = payout_repo.list_payouts(
            db,
            approval_status=approval_status,
            payout_date=payout_date,
            driver_id=driver_id,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("payout_list: DB error: %s", exc)
        raise StorageError("could not list payouts") from exc
    return [Payout.from_row(r) for r in rows]


def summarize_payouts(payouts: list[Payout], today: date | None = None) -> PayoutStats:
    today = today or date.today()
    stats = PayoutStats()
    for payout in payouts:
        net = payout.net_payout
        stats.total_count += 1
        stats.total_net += net
        if payout.approval_status == "pending":
            stats.pending_count += 1
            stats.pending_amount += net
        elif payout.approval_status == "approved":
            stats.approved_count += 1
            if payout.payment_status != "paid":
                stats.approved_unpaid_amount += net
        if payout.payment_status == "paid":
            stats.paid_amount += net
        if payout.payout_date and (payout.payout_date.year, payout.payout_date.month) == (today.year, today.month):
            stats.this_month_amount += net
    return stats
