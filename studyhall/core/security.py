# studyhall/core/security.py
from typing import Optional
from passlib.context import CryptContext

from .config import settings

_pwd = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS)

def _with_pepper(plain: str) -> str:
    return f"{plain}{settings.PASSWORD_PEPPER}"

def hash_password(password: str) -> str:
    return _pwd.hash(_with_pepper(password))

def verify_password(plain_password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return _pwd.verify(_with_pepper(plain_password), password_hash)
    except ValueError:
        # malformed or foreign hash
        return False

def try_rehash_on_success(plain_password: str, password_hash: str) -> Optional[str]:
    """
    If the password verifies and the hash policy changed (more rounds, new
    scheme) return a fresh hash to store; otherwise None.
    """
    if not verify_password(plain_password, password_hash):
        return None
    if _pwd.needs_update(password_hash):
        return hash_password(plain_password)
    return None
