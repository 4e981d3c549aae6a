"""User segment model."""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from sqlalchemy.types import JSON

from pushadmin.db.base import Base


class UserSegment(Base):
    """Named, reusable set of filter conditions."""

    __tablename__ = "user_segments"
    __table_args__ = (UniqueConstraint("tenant_id", "name", name="uq_user_segments_tenant_name"),)

    id = Column(Integer, primary_key=True)
    tenant_id = Column(
        Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True, index=True
    )
    name = Column(String(200), nullable=False)
    description = Column(Text, default="", nullable=False)
    filter_conditions = Column(JSONB().with_variant(JSON(), "sqlite"), nullable=False)
    is_dynamic = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
