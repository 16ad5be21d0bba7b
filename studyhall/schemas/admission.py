# studyhall/schemas/admission.py
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from studyhall.utils.money import parse_money, parse_int_id, due_amount, ZERO
from studyhall.utils.datetime import parse_iso_date

MONEY_FIELDS = ("total_fee", "amount_paid", "cash", "online", "security_money", "discount")
TEXT_FIELDS = (
    "email", "address", "remark", "profile_image_url", "registration_number",
    "father_name", "aadhar_number", "aadhaar_front_url", "aadhaar_back_url",
)


# ========= Public registration form =========
class RegistrationIn(BaseModel):
    """
    Raw public form -> typed values. Any client-sent `due_amount` is ignored:
    it is always recomputed from fee, discount and paid.
    """
    model_config = ConfigDict(extra="ignore")

    name: str
    phone: str = Field(max_length=15)
    branch_id: int

    email: Optional[str] = None
    address: Optional[str] = None
    membership_start: Optional[date] = None
    membership_end: Optional[date] = None

    total_fee: Decimal = ZERO
    amount_paid: Decimal = ZERO
    cash: Decimal = ZERO
    online: Decimal = ZERO
    security_money: Decimal = ZERO
    discount: Decimal = ZERO

    shift_ids: List[int] = Field(default_factory=list)
    seat_id: Optional[int] = None
    locker_id: Optional[int] = None

    remark: Optional[str] = None
    profile_image_url: Optional[str] = None
    registration_number: Optional[str] = None
    father_name: Optional[str] = None
    aadhar_number: Optional[str] = None
    aadhaar_front_url: Optional[str] = None
    aadhaar_back_url: Optional[str] = None

    # ---- Validators ----
    @field_validator("name", "phone", mode="before")
    @classmethod
    def _strip_required(cls, v):
        s = str(v).strip() if v is not None else ""
        if not s:
            raise ValueError("must not be blank")
        return s

    @field_validator(*TEXT_FIELDS, mode="before")
    @classmethod
    def _blank_to_none(cls, v):
        if v is None:
            return None
        s = str(v).strip()
        return s or None

    @field_validator(*MONEY_FIELDS, mode="before")
    @classmethod
    def _money(cls, v, info):
        return parse_money(v, info.field_name)

    @field_validator("branch_id", "seat_id", "locker_id", mode="before")
    @classmethod
    def _ids(cls, v, info):
        return parse_int_id(v, info.field_name)

    @field_validator("shift_ids", mode="before")
    @classmethod
    def _shift_ids(cls, v):
        if v is None or v == "":
            return []
        if not isinstance(v, (list, tuple)):
            raise ValueError("shift_ids must be an array")
        out = []
        for item in v:
            sid = parse_int_id(item, "shift_ids")
            if sid is not None and sid not in out:
                out.append(sid)
        return out

    @field_validator("membership_start", "membership_end", mode="before")
    @classmethod
    def _dates(cls, v):
        if v in (None, ""):
            return None
        d = parse_iso_date(v)
        if d is None:
            raise ValueError("expected a date (YYYY-MM-DD)")
        return d

    @model_validator(mode="after")
    def _membership_window(self):
        if self.membership_start and self.membership_end and self.membership_end < self.membership_start:
            raise ValueError("membership_end is before membership_start")
        return self

    @property
    def computed_due(self) -> Decimal:
        return due_amount(self.total_fee, self.discount, self.amount_paid)


# ========= Review =========
class RejectIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    reason: Optional[str] = None

    @field_validator("reason", mode="before")
    @classmethod
    def _trim(cls, v):
        if v is None:
            return None
        s = str(v).strip()
        return s[:1000] or None
