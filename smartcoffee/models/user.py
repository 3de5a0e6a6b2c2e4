from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from smartcoffee.db.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    timezone = Column(String, nullable=True)  # e.g. "Europe/Bucharest"
    wake_time = Column(String, nullable=True)  # "06:30" format, used by auto-brew

    # Relationships
    preference = relationship("CoffeePreference", back_populates="user", uselist=False, cascade="all, delete-orphan")
    sleep_records = relationship("SleepRecord", back_populates="user", cascade="all, delete-orphan")
    brew_logs = relationship("BrewLog", back_populates="user", cascade="all, delete-orphan")
    pending_brews = relationship("PendingBrew", back_populates="user", cascade="all, delete-orphan")
