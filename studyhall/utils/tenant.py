# studyhall/utils/tenant.py
from __future__ import annotations

from typing import Any, Optional

from sqlalchemy.orm import Query, Session


class TenantScope:
    """
    A library id that every tenant-owned query must go through.

    Cannot be built without a library id, so a handler that forgot to resolve
    the tenant fails loudly instead of reading across libraries.

        scope = TenantScope(user.library_id)
        scope.query(db, Student).filter(Student.phone == phone).first()
    """

    __slots__ = ("library_id",)

    def __init__(self, library_id: Optional[int]):
        if library_id is None:
            raise ValueError("TenantScope requires a library_id")
        self.library_id = int(library_id)

    def query(self, db: Session, model: Any, *entities: Any) -> Query:
        if not hasattr(model, "library_id"):
            raise TypeError(f"{getattr(model, '__name__', model)!r} is not tenant-scoped")
        return db.query(model, *entities).filter(model.library_id == self.library_id)

    def get(self, db: Session, model: Any, pk: Any):
        """Row by primary key, or None when it belongs to another library."""
        return self.query(db, model).filter(model.id == pk).first()

    def owns(self, obj: Any) -> bool:
        return getattr(obj, "library_id", None) == self.library_id

    def __repr__(self) -> str:
        return f"<TenantScope(library_id={self.library_id})>"
