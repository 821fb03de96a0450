"""Access log for materials and resources."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lms.courses.models import LearningMaterial, LearningResource
from lms.database.base import Base


class AccessType(str, Enum):
    """Kind of interaction recorded in the access log."""

    VIEW = "VIEW"
    DOWNLOAD = "DOWNLOAD"
    EXTERNAL_LINK = "EXTERNAL_LINK"


class UserMaterialAccess(Base):
    """One discrete interaction with a material or a resource.

    Doubles as a learning session: ``session_duration`` stays NULL while the
    session is open and holds minutes once it ends.
    """

    __tablename__ = "user_material_access"
    __table_args__ = (
        CheckConstraint(
            "(material_id IS NULL) OR (resource_id IS NULL)",
            name="ck_user_material_access_single_target",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    material_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("learning_materials.id", ondelete="CASCADE"), nullable=True, index=True
    )
    resource_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("learning_resources.id", ondelete="CASCADE"), nullable=True, index=True
    )
    # Session context; access-log rows written by record_access leave these NULL
    course_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("courses.id", ondelete="SET NULL"), nullable=True
    )
    lesson_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("lessons.id", ondelete="SET NULL"), nullable=True
    )
    access_type: Mapped[str] = mapped_column(String(20), nullable=False, default=AccessType.VIEW.value)
    session_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    accessed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        index=True,
    )

    material: Mapped[LearningMaterial | None] = relationship("LearningMaterial")
    resource: Mapped[LearningResource | None] = relationship("LearningResource")


__all__ = ["AccessType", "UserMaterialAccess"]
