from sqlalchemy import Column, String, DateTime, Float, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from smartcoffee.db.database import Base


class CoffeePreference(Base):
    """A user's coffee preferences. One row per user."""
    __tablename__ = "coffee_preferences"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False, unique=True)

    preferred_type = Column(String, nullable=True)  # latte, lung, scurt
    preferred_strength = Column(Float, nullable=False, default=0.6)  # 0-1
    max_caffeine_per_day_mg = Column(Float, nullable=False, default=400.0)

    # Auto mode
    auto_mode_enabled = Column(Boolean, nullable=False, default=True)
    require_confirmation = Column(Boolean, nullable=False, default=True)
    countdown_seconds = Column(Float, nullable=False, default=30.0)
    auto_only_on_weekdays = Column(Boolean, nullable=False, default=False)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="preference")

    def to_dict(self) -> dict:
        return {
            "preferred_type": self.preferred_type,
            "preferred_strength": self.preferred_strength,
            "max_caffeine_per_day_mg": self.max_caffeine_per_day_mg,
            "auto_mode_enabled": self.auto_mode_enabled,
            "require_confirmation": self.require_confirmation,
            "countdown_seconds": self.countdown_seconds,
            "auto_only_on_weekdays": self.auto_only_on_weekdays,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None
        }
