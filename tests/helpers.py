from datetime import datetime
from decimal import Decimal

from fleetpay.models.deduction import Deduction
from fleetpay.models.driver import Driver
from fleetpay.models.trip import Trip


def add_driver(db, driver_id=1, name="Ravi Kumar", phone="9876543210"):
    db.add(Driver(id=driver_id, name=name, phone=phone, status="active"))
    db.commit()


def add_trip(db, driver_id, start, fare, commission, status="completed"):
    db.add(Trip(
        driver_id=driver_id,
        trip_start_time=start,
        trip_end_time=start,
        fare_amount=None if fare is None else Decimal(str(fare)),
        platform_commission=None if commission is None else Decimal(str(commission)),
        trip_status=status,
    ))
    db.commit()


def add_deduction(db, driver_id, amount, status="approved", applied_to_payout_id=None):
    deduction = Deduction(
        driver_id=driver_id,
        amount=Decimal(str(amount)),
        status=status,
        deduction_type="damage",
        reason="incident",
        applied_to_payout_id=applied_to_payout_id,
    )
    db.add(deduction)
    db.commit()
    return deduction.id


def at(day: str, clock: str = "09:00:00") -> datetime:
    return datetime.fromisoformat(f"{day} {clock}")
