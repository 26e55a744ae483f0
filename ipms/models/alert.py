"""Manual alert model."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ipms.database import Base


class ManualAlert(Base):
    """Manually dispatched alert - the only alerts that are persisted."""

    __tablename__ = "manual_alerts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    practice_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("practices.id"), nullable=False, index=True
    )
    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    recipient_user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    recipient_role: Mapped[str] = mapped_column(String(20), nullable=False)
    sent_by: Mapped[int] = mapped_column(Integer, nullable=False)
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
