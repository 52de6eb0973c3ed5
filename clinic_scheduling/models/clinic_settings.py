"""Clinic operating hours and closed date model definitions."""

from sqlalchemy import Boolean, Column, Date, Integer, String
from clinic_scheduling.database import Base


class ClinicOperatingDay(Base):
    """Whether the clinic opens on a weekday."""
    __tablename__ = "clinic_operating_days"

    weekday = Column(String, primary_key=True)  # monday..sunday
    enabled = Column(Boolean, default=True)
    start = Column(String(5))
    end = Column(String(5))


class ClosedDate(Base):
    """A calendar date on which the clinic is closed."""
    __tablename__ = "clinic_closed_dates"

    id = Column(Integer, primary_key=True)
    date = Column(Date, unique=True, nullable=False)
    reason = Column(String)
    type = Column(String, default="other")  # holiday/maintenance/other
