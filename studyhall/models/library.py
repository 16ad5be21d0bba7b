# studyhall/models/library.py
from sqlalchemy import (
    Column, Integer, String, Boolean, ForeignKey, Text, DateTime, func
)
from sqlalchemy.orm import relationship
from studyhall.db.base import Base

# ================= Library (tenant) =================
class Library(Base):
    __tablename__ = "libraries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    library_name = Column(String(255), nullable=False)
    owner_name = Column(String(255), nullable=True)

    # always stored uppercase; public URLs are case-insensitive
    library_code = Column(String(32), unique=True, nullable=False, index=True)

    status = Column(String(16), nullable=False, default="active")
    timezone = Column(String(64), nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    branches = relationship("Branch", back_populates="library", lazy="selectin")

    def __repr__(self) -> str:
        return f"<Library(id={self.id}, code='{self.library_code}')>"


class Branch(Base):
    __tablename__ = "branches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    library_id = Column(Integer, ForeignKey("libraries.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)

    library = relationship("Library", back_populates="branches")


class Seat(Base):
    __tablename__ = "seats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    library_id = Column(Integer, ForeignKey("libraries.id", ondelete="CASCADE"), nullable=False, index=True)
    branch_id = Column(Integer, ForeignKey("branches.id", ondelete="SET NULL"), nullable=True)
    seat_number = Column(String(32), nullable=False)


class Shift(Base):
    __tablename__ = "schedules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    library_id = Column(Integer, ForeignKey("libraries.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    time = Column(String(64), nullable=True)  # free text, e.g. "06:00 - 12:00"


class Locker(Base):
    __tablename__ = "lockers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    library_id = Column(Integer, ForeignKey("libraries.id", ondelete="CASCADE"), nullable=False, index=True)
    locker_number = Column(String(32), nullable=False)
    is_assigned = Column(Boolean, nullable=False, default=False)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="SET NULL"), nullable=True)
