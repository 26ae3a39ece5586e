"""
models/circle.py: Circle table definition.

No business logic. No imports from services or routes.

Key design points:
  - `id` is assigned by the ledger counter (services/ledger_store.py), not by
    the database, so ids are sequential per deployment and never reused.
  - `created_at` is a block height supplied by the host, not a wall-clock time.
  - `creator` is immutable once written.
  - `paused` and `active` are independent flags: paused circles can be
    unpaused, deactivation is terminal.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, Boolean, CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from circlecare.app.extensions import db

CIRCLE_NAME_MAX = 50
MAX_MEMBERS = 50
PRINCIPAL_MAX = 128


class Circle(db.Model):
    __tablename__ = "circles"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_circles_name_nonempty",
        ),
        CheckConstraint(
            f"member_count >= 0 AND member_count <= {MAX_MEMBERS}",
            name="ck_circles_member_count_range",
        ),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)

    name: Mapped[str] = mapped_column(String(CIRCLE_NAME_MAX), nullable=False)

    creator: Mapped[str] = mapped_column(
        String(PRINCIPAL_MAX),
        nullable=False,
        index=True,   # counted for the per-user circle limit
    )

    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    paused: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    member_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # ── Relationships ──────────────────────────────────────────────────────

    members: Mapped[list["Member"]] = relationship(  # noqa: F821
        "Member",
        back_populates="circle",
        order_by="Member.position",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Circle id={self.id} name={self.name!r} "
            f"active={self.active} paused={self.paused}>"
        )
