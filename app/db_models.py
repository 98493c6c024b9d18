"""SQLAlchemy ORM models mirroring the relations the providers consume."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """Public profile of a signed-up user."""

    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    icon_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    x_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    x_label: Mapped[str | None] = mapped_column(String(120), nullable=True)
    youtube_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    youtube_label: Mapped[str | None] = mapped_column(String(120), nullable=True)
    other_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    other_label: Mapped[str | None] = mapped_column(String(120), nullable=True)


class OshiList(Base):
    """A user's curated list; the lowest ``list_id`` is the primary one."""

    __tablename__ = "list"

    list_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.user_id", ondelete="CASCADE"), index=True
    )
    can_display: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    favorite_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class Series(Base):
    __tablename__ = "series"

    series_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(255))
    favorite_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    update: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class Movie(Base):
    """A single episode or standalone video."""

    __tablename__ = "movie"

    movie_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    series_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("series.series_id", ondelete="SET NULL"), nullable=True
    )
    movie_title: Mapped[str] = mapped_column(String(255))
    url: Mapped[str | None] = mapped_column(Text, nullable=True)
    thumbnail_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    update: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    favorite_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    weekday: Mapped[str | None] = mapped_column(String(3), nullable=True)


class ListMovie(Base):
    __tablename__ = "list_movie"
    __table_args__ = (
        UniqueConstraint("list_id", "movie_id", name="uq_list_movie"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    list_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("list.list_id", ondelete="CASCADE")
    )
    movie_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("movie.movie_id", ondelete="CASCADE")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )


class UserList(Base):
    """A user favouriting somebody else's list."""

    __tablename__ = "user_list"
    __table_args__ = (
        UniqueConstraint("user_id", "list_id", name="uq_user_list"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.user_id", ondelete="CASCADE")
    )
    list_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("list.list_id", ondelete="CASCADE")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )


class UserSeries(Base):
    __tablename__ = "user_series"
    __table_args__ = (
        UniqueConstraint("user_id", "series_id", name="uq_user_series"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.user_id", ondelete="CASCADE")
    )
    series_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("series.series_id", ondelete="CASCADE")
    )
    can_display: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )


class History(Base):
    """Latest click on a movie per user."""

    __tablename__ = "history"
    __table_args__ = (
        UniqueConstraint("user_id", "movie_id", name="uq_history_user_movie"),
    )

    history_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.user_id", ondelete="CASCADE")
    )
    movie_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("movie.movie_id", ondelete="CASCADE")
    )
    clicked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class ProfileVisibility(Base):
    __tablename__ = "profile_visibility"

    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True
    )
    oshi_list_visibility: Mapped[str] = mapped_column(String(16), default="private")
    oshi_series_visibility: Mapped[str] = mapped_column(String(16), default="private")
