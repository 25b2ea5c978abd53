from sqlalchemy import Column, DateTime, String, func

from premium.core.database import Base
from premium.models.shared import generate_uuid


class User(Base):
    """Signed-in member. Only the fields the payment flow reads are kept."""

    __tablename__ = "users"

    id = Column(String(255), primary_key=True, default=lambda: str(generate_uuid()))
    email = Column(String(255), unique=True, nullable=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
