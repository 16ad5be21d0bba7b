# studyhall/services/qr.py
import io
import json

import qrcode
from qrcode.constants import ERROR_CORRECT_M

from studyhall.models import Library
from studyhall.services.attendance import QR_TYPE


def attendance_payload(library: Library) -> dict:
    """
    Static payload printed at the library entrance. No timestamp or nonce:
    the same printed code stays valid; scans are checked against the
    student's own library id.
    """
    return {
        "libraryId": library.id,
        "libraryCode": library.library_code,
        "libraryName": library.library_name,
        "type": QR_TYPE,
    }


def render_png(payload: dict, box_size: int = 10, border: int = 4) -> bytes:
    qr = qrcode.QRCode(version=None, error_correction=ERROR_CORRECT_M, box_size=box_size, border=border)
    qr.add_data(json.dumps(payload, separators=(",", ":")))
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
