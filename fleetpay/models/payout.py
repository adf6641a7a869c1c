from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.sql import func

from fleetpay.database import Base


class Payout(Base):
    __tablename__ = "payouts"
    __table_args__ = (
        UniqueConstraint("driver_id", "payout_date", name="uq_payouts_driver_date"),
        CheckConstraint("net_payout >= 0", name="ck_payouts_net_non_negative"),
    )

    id                = Column(Integer, primary_key=True, index=True)
    driver_id         = Column(Integer, ForeignKey("drivers.id", ondelete="CASCADE"), nullable=False, index=True)
    payout_date       = Column(Date, nullable=False, index=True)
    revenue_amount    = Column(Numeric(18, 8), nullable=False, default=0)
    commission_amount = Column(Numeric(18, 8), nullable=False, default=0)
    incentive_amount  = Column(Numeric(18, 8), nullable=False, default=0)
    deduction_amount  = Column(Numeric(18, 8), nullable=False, default=0)
    net_payout        = Column(Numeric(18, 8), nullable=False, default=0)
    approval_status   = Column(String(20), nullable=False, default="pending", index=True)
    approved_by       = Column(String(255), nullable=True)
    approved_at       = Column(DateTime(timezone=True), nullable=True)
    payment_status    = Column(String(20), nullable=False, default="pending", index=True)
    payment_reference = Column(String(255), nullable=True)
    created_at        = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at        = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
