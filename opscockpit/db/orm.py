from datetime import datetime
from typing import Any
from typing import Generator

import sqlalchemy as sa
from sqlalchemy import ForeignKey
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.orm import Mapped
from sqlalchemy.orm import MappedAsDataclass
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import relationship

# Values of the "type" column; the database calls remote jobs "ssh"
DB_TYPE_LOCAL = "local"
DB_TYPE_SSH = "ssh"


# see
#
# https://stackoverflow.com/questions/54026174/proper-autogenerate-of-str-implementation-also-for-sqlalchemy-classes
def keyvalgen(obj: Any) -> Generator[tuple[str, Any], None, None]:
    """Generate attr name/val pairs, filtering out SQLA attrs."""
    excl = ("_sa_adapter", "_sa_instance_state")
    for k, v in vars(obj).items():
        if not k.startswith("_") and not any(hasattr(v, a) for a in excl):  # type: ignore
            yield k, v


class Base(AsyncAttrs, DeclarativeBase, MappedAsDataclass):
    def __repr__(self) -> str:
        params = ", ".join(f"{k}={v}" for k, v in keyvalgen(self))
        return f"{self.__class__.__name__}({params})"


class Job(Base):
    __tablename__ = "jobs"
    __table_args__ = (
        sa.CheckConstraint("type IN ('local', 'ssh')", name="ck_jobs_type"),
        sa.CheckConstraint(
            "status IN ('running', 'success', 'failed')", name="ck_jobs_status"
        ),
    )

    id: Mapped[str] = mapped_column(sa.String(length=36), primary_key=True)
    type: Mapped[str] = mapped_column(sa.String(length=16))
    command: Mapped[str] = mapped_column(sa.Text)
    status: Mapped[str] = mapped_column(sa.String(length=16))
    started_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True))
    finished_at: Mapped[None | datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=True, default=None
    )

    logs: Mapped[list["JobLog"]] = relationship(
        back_populates="job",
        cascade="all, delete, delete-orphan",
        passive_deletes=True,
        default_factory=list,
    )


class JobLog(Base):
    __tablename__ = "job_logs"
    __table_args__ = (
        sa.CheckConstraint(
            "stream IN ('stdout', 'stderr')", name="ck_job_logs_stream"
        ),
        sa.Index("idx_job_logs_job_timestamp", "job_id", "timestamp"),
    )

    # Surrogate key, also the tie-breaker for records with equal timestamps
    id: Mapped[int] = mapped_column(init=False, primary_key=True, autoincrement=True)
    job_id: Mapped[str] = mapped_column(
        sa.String(length=36), ForeignKey("jobs.id", ondelete="cascade")
    )
    timestamp: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True))
    stream: Mapped[str] = mapped_column(sa.String(length=16))
    data: Mapped[str] = mapped_column(sa.Text)

    job: Mapped["Job"] = relationship(back_populates="logs", init=False)
