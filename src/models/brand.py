"""Brand master data (``mst_brand``)."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base


class Brand(Base):
    __tablename__ = "mst_brand"

    brand_code: Mapped[str] = mapped_column(String(10), primary_key=True)
    brand_name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(255))
