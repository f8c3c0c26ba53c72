"""Asset category master data (``mst_category``)."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base


class Category(Base):
    __tablename__ = "mst_category"

    category_code: Mapped[str] = mapped_column(String(10), primary_key=True)
    category_name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(255))
