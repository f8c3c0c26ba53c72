"""AssetScanLog model: one row per barcode scan of an asset."""

from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base, UTCDateTime


class AssetScanLog(Base):
    __tablename__ = "asset_scan_log"

    scan_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    asset_no: Mapped[str] = mapped_column(
        String(20), ForeignKey("asset_master.asset_no"), nullable=False
    )
    scanned_by: Mapped[str] = mapped_column(String(20), ForeignKey("mst_user.user_id"), nullable=False)
    location_code: Mapped[str | None] = mapped_column(
        String(10), ForeignKey("mst_location.location_code")
    )
    ip_address: Mapped[str | None] = mapped_column(String(45))
    user_agent: Mapped[str | None] = mapped_column(Text)
    scanned_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    __table_args__ = (Index("ix_asset_scan_log_scanned_at", "scanned_at"),)
