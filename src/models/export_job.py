"""ExportJob model: async data export job tracking."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base, JSONType, UTCDateTime, UUIDPrimaryKeyMixin
from src.models.enums import ExportJobStatus, ExportType


class ExportJob(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "export_jobs"

    requested_by: Mapped[str] = mapped_column(
        String(20),
        ForeignKey("mst_user.user_id", ondelete="CASCADE"),
        nullable=False,
    )

    # Export configuration, stored verbatim and reloaded for generation
    export_type: Mapped[ExportType] = mapped_column(
        SQLAlchemyEnum(
            ExportType, name="exporttype", values_callable=lambda e: [m.value for m in e]
        ),
        nullable=False,
    )
    config: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    # Status
    status: Mapped[ExportJobStatus] = mapped_column(
        SQLAlchemyEnum(ExportJobStatus, name="exportjobstatus"),
        nullable=False,
        default=ExportJobStatus.PENDING,
    )
    error_message: Mapped[str | None] = mapped_column(Text)

    # Output
    file_path: Mapped[str | None] = mapped_column(String(500))
    file_name: Mapped[str | None] = mapped_column(String(255))
    file_size: Mapped[int | None] = mapped_column(BigInteger)
    total_records: Mapped[int | None] = mapped_column(Integer)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime())

    __table_args__ = (
        Index("ix_export_jobs_requested_by", "requested_by"),
        Index("ix_export_jobs_status", "status"),
        Index("ix_export_jobs_created_at", "created_at"),
        Index("ix_export_jobs_expires_at", "expires_at"),
        Index("ix_export_jobs_file_name", "file_name"),
        # One in-flight job per owner
        Index(
            "uq_export_jobs_pending_owner",
            "requested_by",
            unique=True,
            postgresql_where=text("status = 'PENDING'"),
            sqlite_where=text("status = 'PENDING'"),
        ),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status != ExportJobStatus.PENDING

    def __repr__(self) -> str:
        return (
            f"<ExportJob id={self.id} type={self.export_type.value} "
            f"owner={self.requested_by} status={self.status.value}>"
        )
