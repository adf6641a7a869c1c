import sqlite3
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fleetpay.core.auth import AuthContext, Role
from fleetpay.core.config import settings
from fleetpay.database import Base, engine_options
from fleetpay.models.deduction import Deduction
from fleetpay.models.driver import Driver
from fleetpay.models.payout import Payout
from fleetpay.models.trip import Trip


sqlite3.register_adapter(Decimal, float)


@pytest.fixture(autouse=True)
def _utc_payout_days(monkeypatch):
    monkeypatch.setattr(settings, "PAYOUT_TIMEZONE", "UTC")


@pytest.fixture
def SessionLocal():
    engine = create_engine("sqlite://", poolclass=StaticPool, **engine_options("sqlite://"))
    Base.metadata.create_all(engine, tables=[
        Driver.__table__,
        Trip.__table__,
        Payout.__table__,
        Deduction.__table__,
    ])
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db(SessionLocal):
    with SessionLocal() as session:
        yield session


@pytest.fixture
def manager():
    return AuthContext(user_id="mgr-1", role=Role.MANAGER)


@pytest.fixture
def driver_login():
    return AuthContext(user_id="9876543210", role=Role.DRIVER, driver_id=1)
