import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from clinic_scheduling.core.cache import SchedulingCache  # noqa: E402
from clinic_scheduling.database import Base  # noqa: E402
from clinic_scheduling.models.appointment import Appointment  # noqa: E402
from clinic_scheduling.models.availability import PractitionerAvailability  # noqa: E402
from clinic_scheduling.models.clinic_settings import ClinicOperatingDay, ClosedDate  # noqa: E402

TABLES = [
    Appointment.__table__,
    PractitionerAvailability.__table__,
    ClinicOperatingDay.__table__,
    ClosedDate.__table__,
]


@pytest.fixture
def scheduling_db(monkeypatch: pytest.MonkeyPatch):
    for module in ('appointment_routes', 'availability_routes', 'clinic_routes'):
        monkeypatch.setattr(f'clinic_scheduling.routes.{module}.ensure_database_ready', lambda: None)

    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=TABLES)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=TABLES)


@pytest.fixture
def cache() -> SchedulingCache:
    return SchedulingCache(default_ttl=300)
