# studyhall/models/audit.py
from sqlalchemy import Column, Integer, String, DateTime, JSON, func
from studyhall.db.base import Base

class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True)
    occurred_at = Column(DateTime, server_default=func.now(), nullable=False)

    # NULL only for failures before a tenant was resolved (unknown library code)
    library_id = Column(Integer, nullable=True, index=True)

    action = Column(String(64), nullable=False)
    status = Column(String(32), nullable=True)

    target_type = Column(String(64), nullable=True)
    target_id   = Column(String(128), nullable=True)

    actor_type = Column(String(16), nullable=True)   # staff / student / public
    actor_id   = Column(String(128), nullable=True)
    actor_name = Column(String(255), nullable=True)
    ip_address = Column(String(64), nullable=True)
    path       = Column(String(255), nullable=True)
    correlation_id = Column(String(64), nullable=True)

    hmac_hash = Column(String(128), nullable=False)

    prev_values = Column(JSON, nullable=True)
    new_values  = Column(JSON, nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "occurred_at": self.occurred_at.isoformat() if self.occurred_at else None,
            "action": self.action,
            "status": self.status,
            "target_type": self.target_type,
            "target_id": self.target_id,
            "actor_type": self.actor_type,
            "actor_id": self.actor_id,
            "actor_name": self.actor_name,
            "ip_address": self.ip_address,
            "path": self.path,
            "correlation_id": self.correlation_id,
            "prev_values": self.prev_values,
            "new_values": self.new_values,
        }
