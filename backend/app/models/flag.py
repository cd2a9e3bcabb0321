"""Persisted onboarding flags.

One row per (namespace, key).  A namespace is one onboarding session
(the browser profile the front-end runs in), so the same key can exist
for many sessions side by side.
"""

from datetime import datetime

from sqlalchemy import DateTime, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class OnboardingFlag(Base):
    __tablename__ = "onboarding_flags"
    __table_args__ = (
        UniqueConstraint("namespace", "key", name="uq_onboarding_flags_namespace_key"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    namespace: Mapped[str] = mapped_column(String(128), index=True)
    key: Mapped[str] = mapped_column(String(128))
    # Raw string value; structured values are JSON-encoded by callers
    value: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
