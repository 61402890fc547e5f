from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Uuid, UniqueConstraint
from sqlalchemy.sql import func

from guard_api.core.database import Base

class GuardSiteAssignment(Base):
    __tablename__ = "guard_site_assignments"

    assignment_id = Column(Integer, primary_key=True, autoincrement=True)

    guard_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("guards.guard_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # opaque id owned by the sites service; not checked here
    site_id = Column(String, nullable=False, index=True)

    assigned_at = Column(DateTime, server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("guard_id", "site_id", name="uq_guard_site_assignments_guard_site"),
    )
