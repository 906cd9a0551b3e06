"""
Movie model. The catalog is maintained elsewhere; shows and notifications only read it.
"""

from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .show import Show


class Movie(Base):
    """Movie model referenced by shows."""

    __tablename__ = "movies"

    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    overview: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    runtime_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    shows: Mapped[List["Show"]] = relationship("Show", back_populates="movie")

    def __repr__(self) -> str:
        return f"<Movie(id={self.id}, title='{self.title}')>"
