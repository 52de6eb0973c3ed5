"""Practitioner availability model definitions."""

from sqlalchemy import JSON, Boolean, Column, Integer, String, UniqueConstraint
from clinic_scheduling.database import Base


class PractitionerAvailability(Base):
    """Recurring open windows for one practitioner on one ISO weekday (1-7)."""
    __tablename__ = "practitioner_availability"
    __table_args__ = (UniqueConstraint("practitioner_id", "weekday", name="uq_practitioner_weekday"),)

    id = Column(Integer, primary_key=True)
    practitioner_id = Column(String, index=True, nullable=False)
    weekday = Column(Integer, nullable=False)
    enabled = Column(Boolean, default=True)
    time_slots = Column(JSON, default=list)
