# studyhall/services/libraries.py
from typing import Optional

from sqlalchemy.orm import Session

from studyhall.core.errors import NotFoundError
from studyhall.models import Library


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def find_library(db: Session, code: Optional[str], *, active_only: bool = True) -> Library:
    """Library by case-insensitive code; NotFoundError when missing or inactive."""
    c = normalize_code(code)
    lib = db.query(Library).filter(Library.library_code == c).first() if c else None
    if lib is None or (active_only and lib.status != "active"):
        raise NotFoundError("Library not found")
    return lib
