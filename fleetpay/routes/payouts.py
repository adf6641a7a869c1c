from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from fleetpay.core.auth import AuthContext
from fleetpay.database import get_db
from fleetpay.dependencies.auth_context import get_auth_context, require_payout_manager
from fleetpay.logic.commission import calculate_commission_breakdown
from fleetpay.logic.money import format_currency
from fleetpay.services import payouts as payout_service
from fleetpay.services.errors import (
    Forbidden,
    InvalidAmount,
    InvalidState,
    NotFound,
    PayoutError,
    StorageError,
)

router = APIRouter(tags=["payouts"])


class GeneratePayoutRequest(BaseModel):
    driver_id: int
    payout_date: date


class ApprovalRequest(BaseModel):
    action: Literal["approve", "reject"]


class PaymentRequest(BaseModel):
    status: Literal["paid", "failed"]
    payment_reference: str | None = Field(default=None, max_length=255)


class PayoutOut(BaseModel):
    id: int
    driver_id: int
    driver_name: str | None = None
    payout_date: date
    revenue_amount: Decimal
    commission_amount: Decimal
    incentive_amount: Decimal
    deduction_amount: Decimal
    net_payout: Decimal
    net_payout_display: str
    approval_status: str
    approved_by: str | None = None
    approved_at: datetime | None = None
    payment_status: str
    payment_reference: str | None = None
    applied_deduction_ids: list[int] = []

    @classmethod
    def from_payout(cls, payout: payout_service.Payout) -> "PayoutOut":
        return cls(
            id=payout.id,
            driver_id=payout.driver_id,
            driver_name=payout.driver_name,
            payout_date=payout.payout_date,
            revenue_amount=payout.revenue_amount,
            commission_amount=payout.commission_amount,
            incentive_amount=payout.incentive_amount,
            deduction_amount=payout.deduction_amount,
            net_payout=payout.net_payout,
            net_payout_display=format_currency(payout.net_payout),
            approval_status=payout.approval_status,
            approved_by=payout.approved_by,
            approved_at=payout.approved_at,
            payment_status=payout.payment_status,
            payment_reference=payout.payment_reference,
            applied_deduction_ids=payout.applied_deduction_ids,
        )


def _http_error(exc: PayoutError) -> HTTPException:
    if isinstance(exc, NotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, InvalidState):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, InvalidAmount):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    if isinstance(exc, Forbidden):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if isinstance(exc, StorageError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _stats_payload(stats: payout_service.PayoutStats) -> dict[str, float | int]:
    return {
        "total_count": stats.total_count,
        "total_net": float(stats.total_net),
        "pending_count": stats.pending_count,
        "approved_count": stats.approved_count,
        "pending_amount": float(stats.pending_amount),
        "approved_unpaid_amount": float(stats.approved_unpaid_amount),
        "paid_amount": float(stats.paid_amount),
        "this_month_amount": float(stats.this_month_amount),
    }


@router.get("/api/commission/breakdown")
def commission_breakdown(revenue: Decimal = Query(...)):
    try:
        return calculate_commission_breakdown(revenue).as_dict()
    except InvalidAmount as exc:
        raise _http_error(exc) from exc


@router.post("/api/payouts/generate", status_code=status.HTTP_201_CREATED, response_model=PayoutOut)
def generate_payout(
    payload: GeneratePayoutRequest,
    auth: AuthContext = Depends(require_payout_manager),
    db: Session = Depends(get_db),
):
    try:
        payout = payout_service.generate_payout(db, payload.driver_id, payload.payout_date)
    except PayoutError as exc:
        raise _http_error(exc) from exc
    return PayoutOut.from_payout(payout)


@router.get("/api/payouts")
def list_payouts(
    approval_status: Literal["pending", "approved", "rejected"] | None = Query(default=None),
    payout_date: date | None = Query(default=None),
    driver_id: int | None = Query(default=None),
    auth: AuthContext = Depends(require_payout_manager),
    db: Session = Depends(get_db),
):
    try:
        payouts = payout_service.list_payouts(
            db,
            approval_status=approval_status,
            payout_date=payout_date,
            driver_id=driver_id,
        )
    except PayoutError as exc:
        raise _http_error(exc) from exc
    return {
        "payouts": [PayoutOut.from_payout(p) for p in payouts],
        "stats": _stats_payload(payout_service.summarize_payouts(payouts)),
    }


@router.get("/api/payouts/mine")
def my_payouts(
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    if not auth.role.can_view_own_payouts or auth.driver_id is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No driver profile for this login.")
    try:
        payouts = payout_service.list_payouts(db, driver_id=auth.driver_id)
    except PayoutError as exc:
        raise _http_error(exc) from exc
    return {
        "payouts": [PayoutOut.from_payout(p) for p in payouts],
        "stats": _stats_payload(payout_service.summarize_payouts(payouts)),
    }


@router.get("/api/payouts/{payout_id}", response_model=PayoutOut)
def get_payout(
    payout_id: int,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    try:
        payout = payout_service.get_payout(db, payout_id)
    except PayoutError as exc:
        raise _http_error(exc) from exc
    if not (auth.can_manage_payouts or auth.owns_driver(payout.driver_id)):
        # Hide other drivers' payouts entirely
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"payout {payout_id} not found")
    return PayoutOut.from_payout(payout)


@router.post("/api/payouts/{payout_id}/approval", response_model=PayoutOut)
def set_approval(
    payout_id: int,
    payload: ApprovalRequest,
    auth: AuthContext = Depends(require_payout_manager),
    db: Session = Depends(get_db),
):
    try:
        payout = payout_service.set_approval(db, payout_id, payload.action, auth)
    except PayoutError as exc:
        raise _http_error(exc) from exc
    return PayoutOut.from_payout(payout)


@router.post("/api/payouts/{payout_id}/payment", response_model=PayoutOut)
def set_payment_status(
    payout_id: int,
    payload: PaymentRequest,
    auth: AuthContext = Depends(require_payout_manager),
    db: Session = Depends(get_db),
):
    try:
        payout = payout_service.set_payment_status(
            db,
            payout_id,
            payload.status,
            auth,
            payment_reference=payload.payment_reference,
        )
    except PayoutError as exc:
        raise _http_error(exc) from exc
    return PayoutOut.from_payout(payout)
