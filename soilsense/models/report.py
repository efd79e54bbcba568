"""Agricultural report model."""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from soilsense.database import Base, utcnow


class Report(Base):
    """Saved field analysis with the AI recommendations it produced."""

    __tablename__ = "report"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(256), nullable=False)
    date = Column(DateTime, nullable=False)
    sensor_data = Column(JSON, nullable=False)
    calculation_data = Column(JSON, nullable=False)
    selected_crop = Column(JSON, nullable=False)
    crop_recommendations = Column(JSON, nullable=False)
    fertilizer_recommendation = Column(JSON, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="reports")
