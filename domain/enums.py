"""Domain Enums"""
from enum import Enum


class RoomType(str, Enum):
    STANDARD = "Standard"
    DELUXE = "Deluxe"
    SUITE = "Suite"
    PRESIDENTIAL = "Presidential"


class RoomStatus(str, Enum):
    AVAILABLE = "Available"
    OCCUPIED = "Occupied"
    MAINTENANCE = "Maintenance"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUND = "refund"


class ReservationStep(str, Enum):
    """Steps of the guest reservation workflow"""
    BROWSING = "BROWSING"
    CHECKING = "CHECKING"
    FORM_OPEN = "FORM_OPEN"
    SUBMITTING = "SUBMITTING"
    CONFIRMED = "CONFIRMED"
    REJECTED = "REJECTED"


class BookingTab(str, Enum):
    UPCOMING = "upcoming"
    PAST = "past"
    CANCELLED = "cancelled"


class UserRole(str, Enum):
    ADMIN = "admin"
    GUEST = "guest"
