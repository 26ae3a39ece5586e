"""
models/member.py: Member and UserCircle table definitions.

No business logic. No imports from services or routes.

`members` is keyed by (circle_id, address). `position` is the member's index
in join order; services keep positions dense (0..member_count-1) so
getMemberAtIndex is a point lookup.

`user_circles` is the reverse index backing getUserCircles. It is written and
deleted together with the member row.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from circlecare.app.extensions import db
from circlecare.app.models.circle import PRINCIPAL_MAX

NICKNAME_MAX = 20


class Member(db.Model):
    __tablename__ = "members"

    circle_id: Mapped[int] = mapped_column(
        ForeignKey("circles.id", ondelete="RESTRICT"),
        primary_key=True,
    )

    address: Mapped[str] = mapped_column(String(PRINCIPAL_MAX), primary_key=True)

    nickname: Mapped[str] = mapped_column(String(NICKNAME_MAX), nullable=False)

    # Block height at which the member was admitted.
    joined_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    position: Mapped[int] = mapped_column(Integer, nullable=False)

    circle: Mapped["Circle"] = relationship(  # noqa: F821
        "Circle",
        back_populates="members",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Member circle_id={self.circle_id} "
            f"address={self.address} "
            f"position={self.position}>"
        )


class UserCircle(db.Model):
    __tablename__ = "user_circles"

    address: Mapped[str] = mapped_column(String(PRINCIPAL_MAX), primary_key=True)

    circle_id: Mapped[int] = mapped_column(
        ForeignKey("circles.id", ondelete="RESTRICT"),
        primary_key=True,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<UserCircle address={self.address} circle_id={self.circle_id}>"
