"""SQLAlchemy model for the structured image store."""

from __future__ import annotations

from sqlalchemy import BigInteger, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class ImageRecord(Base):
    """One optimized image, addressed by its composite key."""

    __tablename__ = "images"

    key: Mapped[str] = mapped_column(String(1024), primary_key=True)
    file_name: Mapped[str] = mapped_column(String(1024))
    style: Mapped[int] = mapped_column(Integer)
    data: Mapped[str] = mapped_column(Text)
    timestamp: Mapped[int] = mapped_column(BigInteger)


__all__ = ["Base", "ImageRecord"]
