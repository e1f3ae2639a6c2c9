"""Declarative models for the transfer market tables.

Only the table definitions live here; creating clubs and players and moving
players between clubs belongs to the CRUD layer, which writes to the same
tables through its own sessions.
"""

from sqlalchemy import BigInteger, ForeignKey, Integer, String, TIMESTAMP
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    pass


# =========================
# Club
# =========================
class Club(Base):
    __tablename__ = "club"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    country: Mapped[str | None] = mapped_column(String(80))
    budget: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)  # euros


# =========================
# Player
# =========================
class Player(Base):
    __tablename__ = "player"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    position: Mapped[str | None] = mapped_column(String(40))  # GK/DF/MF/FW
    age: Mapped[int | None] = mapped_column(Integer)
    market_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)  # euros

    # Free agents have no club
    club_id: Mapped[int | None] = mapped_column(
        ForeignKey("club.id", ondelete="SET NULL"), index=True
    )


# =========================
# Transfer (completed moves)
# =========================
class Transfer(Base):
    __tablename__ = "transfer"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    player_id: Mapped[int] = mapped_column(ForeignKey("player.id"), nullable=False, index=True)
    from_club_id: Mapped[int | None] = mapped_column(ForeignKey("club.id"))
    to_club_id: Mapped[int] = mapped_column(ForeignKey("club.id"), nullable=False)
    fee: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)  # euros

    created_at = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
