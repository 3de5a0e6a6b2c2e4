from sqlalchemy import Column, String, DateTime, Float, Integer, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from smartcoffee.db.database import Base


class BrewLog(Base):
    """Tracks every brew command sent to the coffee machine."""
    __tablename__ = "brew_logs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    brewed_at = Column(DateTime, default=datetime.utcnow)
    request_id = Column(String, nullable=True)

    # What was brewed
    coffee_type = Column(String, nullable=False)  # latte, lung, scurt
    strength = Column(Float, nullable=False)
    caffeine_mg = Column(Float, nullable=False)
    trigger = Column(String, nullable=False)  # auto, manual, override, emergency

    # Device outcome
    status = Column(String, nullable=False)  # success, error, in_progress, cancelled
    message = Column(String, nullable=True)
    error_code = Column(Integer, nullable=True)
    response_time_seconds = Column(Float, nullable=True)

    user = relationship("User", back_populates="brew_logs")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "brewed_at": self.brewed_at.isoformat() if self.brewed_at else None,
            "request_id": self.request_id,
            "coffee_type": self.coffee_type,
            "strength": self.strength,
            "caffeine_mg": self.caffeine_mg,
            "trigger": self.trigger,
            "status": self.status,
            "message": self.message,
            "error_code": self.error_code,
            "response_time_seconds": self.response_time_seconds
        }
