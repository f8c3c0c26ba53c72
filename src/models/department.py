"""Department master data (``mst_department``)."""

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base


class Department(Base):
    __tablename__ = "mst_department"

    dept_code: Mapped[str] = mapped_column(String(10), primary_key=True)
    description: Mapped[str | None] = mapped_column(String(255))
    plant_code: Mapped[str | None] = mapped_column(
        String(10), ForeignKey("mst_plant.plant_code")
    )
