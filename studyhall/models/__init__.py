# Aggregator: "from studyhall.models import Library, AdmissionRequest, Student, ..."

from studyhall.db.base import Base

from .library import Library, Branch, Seat, Shift, Locker
from .user import User
from .admission import AdmissionRequest
from .student import Student, SeatAssignment, MembershipHistory, StudentAccount
from .attendance import AttendanceScan, AttendanceDay
from .audit import AuditLog

__all__ = [
    "Base",
    "Library",
    "Branch",
    "Seat",
    "Shift",
    "Locker",
    "User",
    "AdmissionRequest",
    "Student",
    "SeatAssignment",
    "MembershipHistory",
    "StudentAccount",
    "AttendanceScan",
    "AttendanceDay",
    "AuditLog",
]
