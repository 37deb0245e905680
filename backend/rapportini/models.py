from __future__ import annotations

import datetime as dt
import uuid

from sqlalchemy import Column, Date, DateTime, Float, ForeignKey, Integer, LargeBinary, String, Text
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def new_identifier() -> str:
    return str(uuid.uuid4())


class Intervention(Base):
    __tablename__ = "interventions"

    id = Column(String(36), primary_key=True, default=new_identifier)
    technician_name = Column(String(200), nullable=False, index=True)
    location = Column(String(200), nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    day = Column(Date, nullable=False, index=True)
    work_type = Column(String(20), nullable=False, default="ordinary", index=True)
    intervention_hours = Column(Float, nullable=False, default=0.0)
    travel_hours = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    photos = relationship(
        "InterventionPhoto",
        back_populates="intervention",
        cascade="all, delete-orphan",
        order_by="InterventionPhoto.position",
    )


class InterventionPhoto(Base):
    __tablename__ = "intervention_photos"

    id = Column(Integer, primary_key=True)
    intervention_id = Column(
        String(36),
        ForeignKey("interventions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False, default=0)
    media_type = Column(String(50), nullable=False, default="image/jpeg")
    content = Column(LargeBinary, nullable=False)

    intervention = relationship("Intervention", back_populates="photos")


class AppSetting(Base):
    __tablename__ = "app_settings"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
