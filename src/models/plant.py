"""Plant master data (``mst_plant``): owned by the master-data CRUD layer."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base


class Plant(Base):
    __tablename__ = "mst_plant"

    plant_code: Mapped[str] = mapped_column(String(10), primary_key=True)
    description: Mapped[str | None] = mapped_column(String(255))
