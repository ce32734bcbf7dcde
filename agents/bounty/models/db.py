from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Text, DateTime, Index
from shared.models.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BountyDraft(Base):
    __tablename__ = "bounties"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    contract_bounty_id = Column(String(78))
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("idx_bounties_created", created_at.desc()),
    )

    @property
    def created_at_utc(self) -> datetime:
        # SQLite hands datetimes back naive; they were written as UTC
        if self.created_at.tzinfo is None:
            return self.created_at.replace(tzinfo=timezone.utc)
        return self.created_at
