"""Unit-of-measure master data (``mst_unit``)."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base


class Unit(Base):
    __tablename__ = "mst_unit"

    unit_code: Mapped[str] = mapped_column(String(10), primary_key=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
