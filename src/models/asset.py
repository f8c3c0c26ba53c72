"""AssetMaster model: the asset register (``asset_master``)."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import CHAR, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base, UTCDateTime


class AssetMaster(Base):
    __tablename__ = "asset_master"

    asset_no: Mapped[str] = mapped_column(String(20), primary_key=True)
    description: Mapped[str | None] = mapped_column(String(255))
    plant_code: Mapped[str | None] = mapped_column(String(10), ForeignKey("mst_plant.plant_code"))
    location_code: Mapped[str | None] = mapped_column(
        String(10), ForeignKey("mst_location.location_code")
    )
    dept_code: Mapped[str | None] = mapped_column(String(10), ForeignKey("mst_department.dept_code"))
    serial_no: Mapped[str | None] = mapped_column(String(50))
    inventory_no: Mapped[str | None] = mapped_column(String(50))
    quantity: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    unit_code: Mapped[str | None] = mapped_column(String(10), ForeignKey("mst_unit.unit_code"))
    category_code: Mapped[str | None] = mapped_column(
        String(10), ForeignKey("mst_category.category_code")
    )
    brand_code: Mapped[str | None] = mapped_column(String(10), ForeignKey("mst_brand.brand_code"))

    # A = active, C = created, I = inactive
    status: Mapped[str] = mapped_column(CHAR(1), nullable=False, default="A")

    created_by: Mapped[str | None] = mapped_column(String(20), ForeignKey("mst_user.user_id"))
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    last_update: Mapped[datetime | None] = mapped_column(UTCDateTime())
    deactivated_at: Mapped[datetime | None] = mapped_column(UTCDateTime())

    __table_args__ = (
        Index("ix_asset_master_plant_code", "plant_code"),
        Index("ix_asset_master_location_code", "location_code"),
        Index("ix_asset_master_status", "status"),
    )
