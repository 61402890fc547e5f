from sqlalchemy import Column, Integer, String, ForeignKey, Uuid

from guard_api.core.database import Base

class GuardSkill(Base):
    __tablename__ = "guard_skills"

    skill_id = Column(Integer, primary_key=True, autoincrement=True)

    guard_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("guards.guard_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # order as submitted; duplicates are kept
    position = Column(Integer, nullable=False)
    skill = Column(String, nullable=False, index=True)
