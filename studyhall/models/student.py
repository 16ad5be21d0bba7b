# studyhall/models/student.py
from sqlalchemy import (
    Column, Integer, String, Date, Numeric, Boolean, ForeignKey, Text, DateTime,
    UniqueConstraint, func
)
from studyhall.db.base import Base

class Student(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, autoincrement=True)
    library_id = Column(Integer, ForeignKey("libraries.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    email = Column(String(255))
    phone = Column(String(15), nullable=False)
    address = Column(Text)
    registration_number = Column(String(50))
    father_name = Column(String(255))
    aadhar_number = Column(String(20))

    branch_id = Column(Integer, ForeignKey("branches.id", ondelete="SET NULL"))
    membership_start = Column(Date)
    membership_end = Column(Date)
    total_fee = Column(Numeric(12, 2), nullable=False, default=0)
    amount_paid = Column(Numeric(12, 2), nullable=False, default=0)
    due_amount = Column(Numeric(12, 2), nullable=False, default=0)
    cash = Column(Numeric(12, 2), nullable=False, default=0)
    online = Column(Numeric(12, 2), nullable=False, default=0)
    security_money = Column(Numeric(12, 2), nullable=False, default=0)
    discount = Column(Numeric(12, 2), nullable=False, default=0)

    remark = Column(Text)
    profile_image_url = Column(Text)
    aadhaar_front_url = Column(Text)
    aadhaar_back_url = Column(Text)
    # plain ids: lockers.student_id and admission_requests already point this way
    locker_id = Column(Integer)

    is_active = Column(Boolean, nullable=False, default=True)
    admission_request_id = Column(Integer)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("library_id", "phone", name="uq_students_library_phone"),
    )

    def __repr__(self) -> str:
        return f"<Student(id={self.id}, phone='{self.phone}', library={self.library_id})>"


class SeatAssignment(Base):
    __tablename__ = "seat_assignments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    library_id = Column(Integer, ForeignKey("libraries.id", ondelete="CASCADE"), nullable=False, index=True)
    seat_id = Column(Integer, ForeignKey("seats.id", ondelete="CASCADE"), nullable=False)
    shift_id = Column(Integer, ForeignKey("schedules.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("seat_id", "shift_id", name="uq_seat_assignments_seat_shift"),
    )


class MembershipHistory(Base):
    """Payment ledger entry: a snapshot of fees and membership at a point in time."""
    __tablename__ = "student_membership_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    library_id = Column(Integer, ForeignKey("libraries.id", ondelete="CASCADE"), nullable=False, index=True)

    membership_start = Column(Date)
    membership_end = Column(Date)
    total_fee = Column(Numeric(12, 2), nullable=False, default=0)
    amount_paid = Column(Numeric(12, 2), nullable=False, default=0)
    due_amount = Column(Numeric(12, 2), nullable=False, default=0)
    cash = Column(Numeric(12, 2), nullable=False, default=0)
    online = Column(Numeric(12, 2), nullable=False, default=0)
    security_money = Column(Numeric(12, 2), nullable=False, default=0)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    remark = Column(Text)

    seat_id = Column(Integer, ForeignKey("seats.id", ondelete="SET NULL"))
    shift_id = Column(Integer, ForeignKey("schedules.id", ondelete="SET NULL"))
    branch_id = Column(Integer, ForeignKey("branches.id", ondelete="SET NULL"))
    locker_id = Column(Integer)

    changed_at = Column(DateTime, server_default=func.now(), nullable=False)


class StudentAccount(Base):
    __tablename__ = "student_accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    library_id = Column(Integer, ForeignKey("libraries.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    phone = Column(String(15), nullable=False)
    password_hash = Column(String(255), nullable=False)
    status = Column(String(16), nullable=False, default="active")
    must_change_password = Column(Boolean, nullable=False, default=True)
    password_changed_at = Column(DateTime, nullable=True)
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("library_id", "phone", name="uq_student_accounts_library_phone"),
    )
