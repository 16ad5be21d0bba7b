# studyhall/models/admission.py
import json

from sqlalchemy import (
    Column, Integer, String, Date, Numeric, ForeignKey, Text, DateTime,
    UniqueConstraint, Index, func
)
from studyhall.db.base import Base

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
STATUSES = (PENDING, APPROVED, REJECTED)

# ================= AdmissionRequest =================
class AdmissionRequest(Base):
    """
    A self-submitted application. Never deleted: approved/rejected rows stay
    as the audit trail of what was asked for.
    """
    __tablename__ = "admission_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    library_id = Column(Integer, ForeignKey("libraries.id", ondelete="CASCADE"), nullable=False, index=True)

    # Student information
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(15), nullable=False, index=True)
    address = Column(Text, nullable=True)
    registration_number = Column(String(50), nullable=True)
    father_name = Column(String(255), nullable=True)
    aadhar_number = Column(String(20), nullable=True)

    # Membership
    branch_id = Column(Integer, ForeignKey("branches.id", ondelete="SET NULL"), nullable=True)
    membership_start = Column(Date, nullable=True)
    membership_end = Column(Date, nullable=True)
    total_fee = Column(Numeric(12, 2), nullable=False, default=0)
    amount_paid = Column(Numeric(12, 2), nullable=False, default=0)
    due_amount = Column(Numeric(12, 2), nullable=False, default=0)
    cash = Column(Numeric(12, 2), nullable=False, default=0)
    online = Column(Numeric(12, 2), nullable=False, default=0)
    security_money = Column(Numeric(12, 2), nullable=False, default=0)
    discount = Column(Numeric(12, 2), nullable=False, default=0)

    remark = Column(Text, nullable=True)
    profile_image_url = Column(Text, nullable=True)
    aadhaar_front_url = Column(Text, nullable=True)
    aadhaar_back_url = Column(Text, nullable=True)

    # JSON array of shift ids, in the order they were picked
    shift_ids = Column(Text, nullable=True)
    seat_id = Column(Integer, ForeignKey("seats.id", ondelete="SET NULL"), nullable=True)
    locker_id = Column(Integer, ForeignKey("lockers.id", ondelete="SET NULL"), nullable=True)

    status = Column(String(20), nullable=False, default=PENDING, index=True)
    # == phone while pending, NULL afterwards; unique per library
    pending_phone = Column(String(15), nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    processed_at = Column(DateTime, nullable=True)
    processed_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    rejection_reason = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("library_id", "pending_phone", name="uq_admission_pending_phone"),
        Index("ix_admission_requests_library_created", "library_id", "created_at"),
    )

    @property
    def shift_id_list(self) -> list:
        if not self.shift_ids:
            return []
        try:
            ids = json.loads(self.shift_ids)
        except ValueError:
            return []
        if not isinstance(ids, list):
            return []
        out = []
        for i in ids:
            if int(i) not in out:
                out.append(int(i))
        return out

    def mark_processed(self, status: str, when, user_id=None, reason=None):
        self.status = status
        self.pending_phone = None
        self.processed_at = when
        self.processed_by = user_id
        self.updated_at = when
        if status == REJECTED:
            self.rejection_reason = reason

    def __repr__(self) -> str:
        return f"<AdmissionRequest(id={self.id}, phone='{self.phone}', status='{self.status}')>"
