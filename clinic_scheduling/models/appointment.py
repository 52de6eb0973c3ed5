"""Appointment model definitions."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, Integer, String
from clinic_scheduling.database import Base


class Appointment(Base):
    """A booked appointment; times are HH:MM strings on ``date``."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    patient_id = Column(String)
    practitioner_id = Column(String, index=True, nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    duration = Column(Integer)
    additional_slots = Column(JSON, default=list)
    status = Column(String, default="scheduled")
    priority = Column(String, default="normal")
    notes = Column(String)
    deleted = Column(Boolean, default=False)
    deleted_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
