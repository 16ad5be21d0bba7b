from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, func
from studyhall.db.base import Base

ROLES = ("Owner", "Admin", "Staff")

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # staff belong to exactly one library; this is their tenant boundary
    library_id = Column(Integer, ForeignKey("libraries.id", ondelete="CASCADE"), nullable=False, index=True)
    username = Column(String(64), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)

    role = Column(String(20), nullable=False, default="Staff")
    full_name = Column(String(128))
    email = Column(String(128))
    is_active = Column(Boolean, default=True)

    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}', role='{self.role}')>"
