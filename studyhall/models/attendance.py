# studyhall/models/attendance.py
from sqlalchemy import (
    Column, Integer, String, Date, ForeignKey, Text, DateTime, UniqueConstraint, Index
)
from studyhall.db.base import Base

class AttendanceScan(Base):
    """
    One QR read. Append-only.

    Direction is not stored: odd `sequence` within the day is a check-in,
    even is a check-out.
    """
    __tablename__ = "attendance_scans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    library_id = Column(Integer, ForeignKey("libraries.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)

    scanned_at = Column(DateTime, nullable=False)        # UTC
    scan_date = Column(Date, nullable=False)             # library-local day
    sequence = Column(Integer, nullable=False)           # 1-based within the day
    notes = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("student_id", "scan_date", "sequence", name="uq_attendance_scans_day_seq"),
        Index("ix_attendance_scans_library_day", "library_id", "scan_date"),
    )

    @property
    def action(self) -> str:
        return "in" if self.sequence % 2 == 1 else "out"

    def __repr__(self) -> str:
        return f"<AttendanceScan(student={self.student_id}, day={self.scan_date}, seq={self.sequence})>"


class AttendanceDay(Base):
    """Per-student, per-day summary kept in step with the scans."""
    __tablename__ = "attendance_days"

    id = Column(Integer, primary_key=True, autoincrement=True)
    library_id = Column(Integer, ForeignKey("libraries.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    scan_date = Column(Date, nullable=False)

    first_in = Column(DateTime, nullable=True)
    last_out = Column(DateTime, nullable=True)
    scan_count = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("student_id", "scan_date", name="uq_attendance_days_student_day"),
        Index("ix_attendance_days_library_day", "library_id", "scan_date"),
    )

    @property
    def checked_in(self) -> bool:
        return (self.scan_count or 0) % 2 == 1

    @property
    def status(self) -> str:
        if not self.first_in:
            return "Absent"
        if self.checked_in or not self.last_out:
            return "Present"
        return "Completed"
