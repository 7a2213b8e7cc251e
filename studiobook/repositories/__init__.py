# studiobook/repositories/__init__.py
"""
Repository layer for the studio booking core.

Usage:
    from studiobook.repositories import RepositoryFactory

    # In a service:
    repository = RepositoryFactory.create_conflict_checker_repository(db)
    conflicts = repository.get_overlapping_room_bookings(room_id, start, end)
"""

from .base_repository import BaseRepository
from .booking_note_repository import BookingNoteRepository
from .booking_repository import BookingRepository
from .conflict_checker_repository import ConflictCheckerRepository
from .factory import RepositoryFactory
from .payment_repository import PaymentRepository
from .user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "BookingNoteRepository",
    "BookingRepository",
    "ConflictCheckerRepository",
    "PaymentRepository",
    "RepositoryFactory",
    "UserRepository",
]
