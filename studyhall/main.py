# studyhall/main.py
import logging
import uuid
from time import time as _now

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException
from starlette.middleware.sessions import SessionMiddleware
from starlette.responses import JSONResponse

from studyhall.core.config import settings
from studyhall.core.errors import AppError, InternalError
from studyhall.db.session import get_db, init_db

# Routers
from studyhall.routers import auth, student_auth, public_registration
from studyhall.routers import admission_requests, students, journal, health
from studyhall.services.audit import write_audit

logging.basicConfig(
    level=getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
log = logging.getLogger("http")

app = FastAPI(title="Study Hall Management")

# ---------------- Session cookie ----------------
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SESSION_SECRET,
    max_age=settings.SESSION_MAX_AGE,
    same_site="lax",
)

# ---------------- Correlation-ID ----------------
@app.middleware("http")
async def add_correlation_id(request: Request, call_next):
    cid = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
    request.state.correlation_id = cid
    resp = await call_next(request)
    resp.headers["X-Correlation-ID"] = cid
    return resp

# ---------------- Idle timeout ----------------
WHITELIST_PREFIXES = (
    "/api/login", "/api/logout",
    "/api/student/login", "/api/student/logout",
    "/api/health", "/health",
    "/api/public-registration", "/library",
)

@app.middleware("http")
async def idle_timeout_middleware(request: Request, call_next):
    path = request.url.path
    if path.startswith(WHITELIST_PREFIXES) or "session" not in request.scope:
        return await call_next(request)

    sess = request.session
    if sess.get("uid") or sess.get("student_id"):
        now = int(_now())
        last = int(sess.get("_last_seen") or 0)
        if last and now - last > settings.IDLE_TIMEOUT_SEC:
            sess.clear()
            return JSONResponse(
                {"message": "Session expired, please log in again.", "error": "unauthorized"},
                status_code=401,
                headers={"X-Session-Expired": "1"},
            )
    return await call_next(request)

# ---------------- Exception handlers ----------------
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if isinstance(exc, InternalError):
        log.error("internal error ref=%s path=%s", exc.reference, request.url.path)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail), "error": "http"},
        headers=getattr(exc, "headers", None),
    )

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
    msg = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={"message": f"{loc}: {msg}" if loc else msg, "error": "validation"},
    )

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    err = InternalError()
    log.exception("unhandled error ref=%s path=%s", err.reference, request.url.path)
    db = next(get_db())
    try:
        write_audit(
            db,
            action="EXCEPTION",
            target_type="System",
            target_id=None,
            status="FAILURE",
            new_values={"path": request.url.path, "error": type(exc).__name__, "reference": err.reference},
            request=request,
        )
        db.commit()
    except Exception:
        log.exception("could not record EXCEPTION audit ref=%s", err.reference)
        db.rollback()
    finally:
        db.close()
    return JSONResponse(status_code=500, content=err.to_dict())

# ---------------- Mount routers ----------------
app.include_router(health.router,             prefix="/api", tags=["Health"])
app.include_router(auth.router,               prefix="/api", tags=["Auth"])
app.include_router(student_auth.router,       prefix="/api")
app.include_router(public_registration.router, prefix="/api/public-registration")
app.include_router(admission_requests.router, prefix="/api")
app.include_router(students.router,           prefix="/api")
app.include_router(journal.router,            prefix="/api")

# Alias without prefix (hidden from docs)
for r in (health.router, public_registration.router):
    app.include_router(r, prefix="", include_in_schema=False)

# ---------------- Startup ----------------
@app.on_event("startup")
def startup():
    init_db()
