from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.sql import func

from fleetpay.database import Base


TRIP_STATUSES = ("completed", "cancelled", "disputed")


class Trip(Base):
    __tablename__ = "trips"
    __table_args__ = (
        CheckConstraint("fare_amount >= 0", name="ck_trips_fare_non_negative"),
        CheckConstraint("platform_commission >= 0", name="ck_trips_commission_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    driver_id = Column(Integer, ForeignKey("drivers.id", ondelete="CASCADE"), nullable=False, index=True)
    vehicle_id = Column(Integer, nullable=True, index=True)
    trip_start_time = Column(DateTime(timezone=True), nullable=False, index=True)
    trip_end_time = Column(DateTime(timezone=True), nullable=True)
    fare_amount = Column(Numeric(14, 4), nullable=True)
    platform_commission = Column(Numeric(14, 4), nullable=True)
    trip_status = Column(String(20), nullable=False, default="completed", index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
