from sqlalchemy import Column, String, DateTime, Float, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from smartcoffee.db.database import Base


class PendingBrew(Base):
    """An automatic brew waiting for the user to confirm it before the countdown runs out."""
    __tablename__ = "pending_brews"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False)

    # Recommendation at the time the countdown started
    coffee_type = Column(String, nullable=False)
    strength = Column(Float, nullable=False)

    status = Column(String, nullable=False, default="pending")  # pending, confirmed, cancelled, expired
    resolved_at = Column(DateTime, nullable=True)
    brew_log_id = Column(String, ForeignKey("brew_logs.id"), nullable=True)

    user = relationship("User", back_populates="pending_brews")

    def seconds_remaining(self, now: datetime) -> float:
        return max(0.0, (self.expires_at - now).total_seconds())

    def to_dict(self, now: datetime) -> dict:
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "expires_at": self.expires_at.isoformat(),
            "seconds_remaining": round(self.seconds_remaining(now), 1),
            "coffee_type": self.coffee_type,
            "strength": self.strength,
            "status": self.status,
            "brew_log_id": self.brew_log_id
        }
