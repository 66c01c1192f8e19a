"""
BlacklistedToken model: revoked token strings kept until their natural expiry.
Backs DatabaseRevocationRegistry so several processes can share one
revocation set.
"""
from sqlalchemy import Column, DateTime, Text, Index
from sqlalchemy.sql import func

from models.base_model import BaseModel, Base


class BlacklistedToken(BaseModel, Base):
    __tablename__ = "blacklisted_tokens"

    # The exact token string; membership checks never decode it
    token = Column(Text, nullable=False, unique=True)
    revoked_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_blacklisted_tokens_expires_at", "expires_at"),
    )

    def __repr__(self):
        return f"<BlacklistedToken expires_at={self.expires_at}>"
