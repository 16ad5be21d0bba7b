# ================================
# file: studyhall/routers/health.py
# ================================
from fastapi import APIRouter

from studyhall.utils.datetime import utcnow

router = APIRouter()

@router.get("/health")
def health():
    return {"ok": True, "time": utcnow().isoformat()}
