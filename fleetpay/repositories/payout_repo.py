"""
Payout repository: all DB reads/writes for payout generation and the payout lifecycle.
Uses SQLAlchemy text() + Session; money columns come back typed as Decimal.
"""
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import Date, DateTime, Integer, Numeric, bindparam, text
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

MONEY = Numeric(18, 8, asdecimal=True)

PAYOUT_COLUMNS = """
    id, driver_id, payout_date, revenue_amount, commission_amount,
    incentive_amount, deduction_amount, net_payout, approval_status,
    approved_by, approved_at, payment_status, payment_reference,
    created_at, updated_at
"""

PAYOUT_TYPES = dict(
    id=Integer,
    driver_id=Integer,
    payout_date=Date,
    revenue_amount=MONEY,
    commission_amount=MONEY,
    incentive_amount=MONEY,
    deduction_amount=MONEY,
    net_payout=MONEY,
    approved_at=DateTime(timezone=True),
    created_at=DateTime(timezone=True),
    updated_at=DateTime(timezone=True),
)


def _for_update(db: Session) -> str:
    # SQLite has no row locks; the single writer lock covers it there.
    return " FOR UPDATE" if db.get_bind().dialect.name == "postgresql" else ""


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_driver(db: Session, driver_id: int, lock: bool = False) -> dict[str, Any] | None:
    row = db.execute(
        text(
            "SELECT id, name, phone, status FROM drivers WHERE id = :driver_id"
            + (_for_update(db) if lock else "")
        ),
        {"driver_id": driver_id},
    ).mappings().first()
    return dict(row) if row else None


def get_payout(db: Session, payout_id: int) -> dict[str, Any] | None:
    row = db.execute(
        text(f"SELECT {PAYOUT_COLUMNS} FROM payouts WHERE id = :payout_id").columns(**PAYOUT_TYPES),
        {"payout_id": payout_id},
    ).mappings().first()
    return dict(row) if row else None


def get_payout_for_driver_date(db: Session, driver_id: int, payout_date: date) -> dict[str, Any] | None:
    row = db.execute(
        text(f"""
            SELECT {PAYOUT_COLUMNS}
            FROM payouts
            WHERE driver_id = :driver_id AND payout_date = :payout_date
        """)
        .bindparams(bindparam("payout_date", type_=Date))
        .columns(**PAYOUT_TYPES),
        {"driver_id": driver_id, "payout_date": payout_date},
    ).mappings().first()
    return dict(row) if row else None


def get_completed_trip_amounts(
    db: Session,
    driver_id: int,
    window_start: datetime,
    window_end: datetime,
) -> list[dict[str, Any]]:
    """
    Completed trips for a driver whose start time is in [window_start, window_end).
    Window bounds are aware UTC datetimes.
    """
    rows = db.execute(
        text("""
            SELECT id, fare_amount, platform_commission
            FROM trips
            WHERE driver_id = :driver_id
              AND trip_status = 'completed'
              AND trip_start_time >= :window_start
              AND trip_start_time < :window_end
            ORDER BY trip_start_time
        """)
        .bindparams(
            bindparam("window_start", type_=DateTime(timezone=True)),
            bindparam("window_end", type_=DateTime(timezone=True)),
        )
        .columns(fare_amount=MONEY, platform_commission=MONEY),
        {"driver_id": driver_id, "window_start": window_start, "window_end": window_end},
    ).mappings().all()
    return [dict(r) for r in rows]


def get_unapplied_deductions(db: Session, driver_id: int, lock: bool = False) -> list[dict[str, Any]]:
    """Approved deductions not yet consumed by any payout."""
    rows = db.execute(
        text(
            """
            SELECT id, amount
            FROM deductions
            WHERE driver_id = :driver_id
              AND status = 'approved'
              AND applied_to_payout_id IS NULL
            ORDER BY id
            """
            + (_for_update(db) if lock else "")
        ).columns(amount=MONEY),
        {"driver_id": driver_id},
    ).mappings().all()
    return [dict(r) for r in rows]


def list_payouts(
    db: Session,
    approval_status: str | None = None,
    payout_date: date | None = None,
    driver_id: int | None = None,
) -> list[dict[str, Any]]:
    clauses = []
    params: dict[str, Any] = {}
    bind_types = []
    if approval_status:
        clauses.append("p.approval_status = :approval_status")
        params["approval_status"] = approval_status
    if payout_date:
        clauses.append("p.payout_date = :payout_date")
        params["payout_date"] = payout_date
        bind_types.append(bindparam("payout_date", type_=Date))
    if driver_id is not None:
        clauses.append("p.driver_id = :driver_id")
        params["driver_id"] = driver_id

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    columns = ", ".join(f"p.{c.strip()}" for c in PAYOUT_COLUMNS.split(","))
    stmt = text(f"""
        SELECT {columns}, d.name AS driver_name, d.phone AS driver_phone
        FROM payouts p
        LEFT JOIN drivers d ON d.id = p.driver_id
        {where}
        ORDER BY p.created_at DESC, p.id DESC
    """)
    if bind_types:
        stmt = stmt.bindparams(*bind_types)
    rows = db.execute(stmt.columns(**PAYOUT_TYPES), params).mappings().all()
    return [dict(r) for r in rows]


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def insert_payout(
    db: Session,
    driver_id: int,
    payout_date: date,
    revenue_amount: Decimal,
    commission_amount: Decimal,
    incentive_amount: Decimal,
    deduction_amount: Decimal,
    net_payout: Decimal,
) -> int | None:
    """
    Insert a pending payout. Returns the new id, or None when a payout already
    exists for (driver_id, payout_date).
    """
    row = db.execute(
        text("""
            INSERT INTO payouts (
                driver_id, payout_date, revenue_amount, commission_amount,
                incentive_amount, deduction_amount, net_payout,
                approval_status, payment_status
            )
            VALUES (
                :driver_id, :payout_date, :revenue_amount, :commission_amount,
                :incentive_amount, :deduction_amount, :net_payout,
                'pending', 'pending'
            )
            ON CONFLICT (driver_id, payout_date) DO NOTHING
            RETURNING id
        """).bindparams(bindparam("payout_date", type_=Date)),
        {
            "driver_id": driver_id,
            "payout_date": payout_date,
            "revenue_amount": revenue_amount,
            "commission_amount": commission_amount,
            "incentive_amount": incentive_amount,
            "deduction_amount": deduction_amount,
            "net_payout": net_payout,
        },
    ).mappings().first()
    return int(row["id"]) if row else None


def stamp_deductions(db: Session, deduction_ids: list[int], payout_id: int) -> int:
    """Mark deductions as consumed by payout_id. Returns rows stamped."""
    if not deduction_ids:
        return 0
    result = db.execute(
        text("""
            UPDATE deductions
            SET applied_to_payout_id = :payout_id,
                updated_at = CURRENT_TIMESTAMP
            WHERE id IN :deduction_ids
              AND applied_to_payout_id IS NULL
        """).bindparams(bindparam("deduction_ids", expanding=True)),
        {"payout_id": payout_id, "deduction_ids": deduction_ids},
    )
    return result.rowcount


def update_approval(
    db: Session,
    payout_id: int,
    approval_status: str,
    approved_by: str,
    approved_at: datetime,
) -> int:
    """Conditional on the payout still being pending. Returns rows updated."""
    result = db.execute(
        text("""
            UPDATE payouts
            SET approval_status = :approval_status,
                approved_by = :approved_by,
                approved_at = :approved_at,
                updated_at = CURRENT_TIMESTAMP
            WHERE id = :payout_id
              AND approval_status = 'pending'
        """).bindparams(bindparam("approved_at", type_=DateTime(timezone=True))),
        {
            "payout_id": payout_id,
            "approval_status": approval_status,
            "approved_by": approved_by,
            "approved_at": approved_at,
        },
    )
    return result.rowcount


def update_payment(
    db: Session,
    payout_id: int,
    payment_status: str,
    payment_reference: str | None,
) -> int:
    """Conditional on approval and a still-pending payment. Returns rows updated."""
    result = db.execute(
        text("""
            UPDATE payouts
            SET payment_status = :payment_status,
                payment_reference = :payment_reference,
                updated_at = CURRENT_TIMESTAMP
            WHERE id = :payout_id
              AND approval_status = 'approved'
              AND payment_status = 'pending'
        """),
        {
            "payout_id": payout_id,
            "payment_status": payment_status,
            "payment_reference": payment_reference,
        },
    )
    return result.rowcount
