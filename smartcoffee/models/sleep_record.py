from sqlalchemy import Column, String, DateTime, Float, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from smartcoffee.db.database import Base


class SleepRecord(Base):
    """One night of sleep reported by a sleep data provider."""
    __tablename__ = "sleep_records"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    recorded_at = Column(DateTime, default=datetime.utcnow)
    source = Column(String, nullable=False)  # mock, manual, healthkit

    duration_seconds = Column(Float, nullable=False)
    quality_score = Column(Float, nullable=False)  # 0-100
    average_heart_rate = Column(Float, nullable=False)  # bpm
    deep_sleep_percent = Column(Float, nullable=False)
    rem_sleep_percent = Column(Float, nullable=False)
    detected_wake_time = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="sleep_records")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "source": self.source,
            "duration_seconds": self.duration_seconds,
            "quality_score": self.quality_score,
            "average_heart_rate": self.average_heart_rate,
            "deep_sleep_percent": self.deep_sleep_percent,
            "rem_sleep_percent": self.rem_sleep_percent,
            "detected_wake_time": self.detected_wake_time.isoformat() if self.detected_wake_time else None,
            "recorded_at": self.recorded_at.isoformat() if self.recorded_at else None
        }
