"""
Database models for the MovieTime booking service.
"""

from .base import Base
from .user import User
from .movie import Movie
from .show import Show
from .booking import Booking, BookingStatus

__all__ = [
    "Base",
    "User",
    "Movie",
    "Show",
    "Booking",
    "BookingStatus",
]
