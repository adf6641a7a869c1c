"""
Two-tier commission schedule.

Revenue up to and including the target earns the base rate; only revenue
strictly above the target earns the incentive rate:

    payout = min(revenue, target) * base_rate + max(revenue - target, 0) * incentive_rate
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal

from fleetpay.core.config import settings
from fleetpay.logic.money import ZERO, to_decimal
from fleetpay.services.errors import InvalidAmount


@dataclass(frozen=True)
class CommissionSchedule:
    target_amount: Decimal
    base_rate: Decimal
    incentive_rate: Decimal

    @classmethod
    def from_settings(cls) -> CommissionSchedule:
        return cls(
            target_amount=to_decimal(settings.PAYOUT_TARGET_AMOUNT),
            base_rate=to_decimal(settings.PAYOUT_BASE_RATE),
            incentive_rate=to_decimal(settings.PAYOUT_INCENTIVE_RATE),
        )


@dataclass(frozen=True)
class CommissionBreakdown:
    base_revenue: Decimal
    incentive_revenue: Decimal
    base_amount: Decimal
    incentive_amount: Decimal
    total_payout: Decimal
    target_amount: Decimal
    base_commission_rate: Decimal
    incentive_commission_rate: Decimal

    def as_dict(self) -> dict[str, float]:
        return {key: float(value) for key, value in asdict(self).items()}


def _amount(value: str | int | float | Decimal | None, name: str) -> Decimal:
    try:
        amount = to_decimal(value)
    except ValueError as exc:
        raise InvalidAmount(f"{name}: {exc}") from exc
    if not amount.is_finite():
        raise InvalidAmount(f"{name} must be finite, got {value!r}")
    if amount < ZERO:
        raise InvalidAmount(f"{name} must not be negative, got {value!r}")
    return amount


def calculate_commission_breakdown(
    revenue: str | int | float | Decimal,
    schedule: CommissionSchedule | None = None,
) -> CommissionBreakdown:
    schedule = schedule or CommissionSchedule.from_settings()
    amount = _amount(revenue, "revenue")

    base_revenue = min(amount, schedule.target_amount)
    incentive_revenue = max(amount - schedule.target_amount, ZERO)
    base_amount = base_revenue * schedule.base_rate
    incentive_amount = incentive_revenue * schedule.incentive_rate

    return CommissionBreakdown(
        base_revenue=base_revenue,
        incentive_revenue=incentive_revenue,
        base_amount=base_amount,
        incentive_amount=incentive_amount,
        total_payout=base_amount + incentive_amount,
        target_amount=schedule.target_amount,
        base_commission_rate=schedule.base_rate,
        incentive_commission_rate=schedule.incentive_rate,
    )


def calculate_payout(
    revenue: str | int | float | Decimal,
    schedule: CommissionSchedule | None = None,
) -> Decimal:
    return calculate_commission_breakdown(revenue, schedule).total_payout


def calculate_net_payout(
    gross_payout: str | int | float | Decimal,
    deductions: str | int | float | Decimal = ZERO,
) -> Decimal:
    gross = _amount(gross_payout, "gross payout")
    return max(gross - _amount(deductions, "deductions"), ZERO)
