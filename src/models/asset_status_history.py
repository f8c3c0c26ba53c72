"""AssetStatusHistory model: audit trail of asset status changes."""

from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base, UTCDateTime


class AssetStatusHistory(Base):
    __tablename__ = "asset_status_history"

    history_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    asset_no: Mapped[str] = mapped_column(
        String(20), ForeignKey("asset_master.asset_no"), nullable=False
    )
    old_status: Mapped[str | None] = mapped_column(String(50))
    new_status: Mapped[str] = mapped_column(String(50), nullable=False)
    changed_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    changed_by: Mapped[str | None] = mapped_column(String(20), ForeignKey("mst_user.user_id"))
    remarks: Mapped[str | None] = mapped_column(Text)

    __table_args__ = (Index("ix_asset_status_history_changed_at", "changed_at"),)
