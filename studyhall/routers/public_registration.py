# studyhall/routers/public_registration.py
"""Unauthenticated registration: form metadata, submit, status by phone."""
from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.orm import Session

from studyhall.db.session import get_db
from studyhall.services import registration as registration_svc

router = APIRouter(tags=["Public registration"])


@router.get("/library/{library_code}")
def library_form(library_code: str, db: Session = Depends(get_db)):
    return registration_svc.registration_form(db, library_code)


@router.post("/library/{library_code}/register", status_code=201)
def register(
    library_code: str,
    request: Request,
    payload: dict = Body(...),  # parsed by hand so missing fields give 400, not 422
    db: Session = Depends(get_db),
):
    row = registration_svc.submit_registration(db, library_code, payload, request=request)
    return registration_svc.submission_response(row)


@router.get("/library/{library_code}/status/{phone}")
def registration_status(library_code: str, phone: str, db: Session = Depends(get_db)):
    return registration_svc.registration_status(db, library_code, phone)
