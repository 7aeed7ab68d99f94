from sqlalchemy import Boolean, Column, ForeignKey, Integer, JSON, String, TIMESTAMP
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base


class Vehicle(Base):
    """
    Garage entry. Written by the garage service; this backend only reads it to show
    a user's primary vehicle next to their social profile.
    """
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    model = Column(String(120), nullable=False)
    power = Column(String(50), nullable=True)
    fuel_type = Column(String(30), nullable=True)
    modifications = Column(JSON, nullable=True)
    image_url = Column(String(500), nullable=True)
    is_primary = Column(Boolean, nullable=False, server_default="0", default=False)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    owner = relationship("User", back_populates="vehicles")
