import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from lms.api import (
    routes_assessment, routes_auth, routes_content, routes_course, routes_enrollment,
    routes_enrollment_request, routes_notification, routes_payment, routes_progress,
)
from lms.config import get_cors_settings, setup_logging
from lms.db.database import init_models

setup_logging()
logger = logging.getLogger("lms")

app = FastAPI(title="LMS Service")

# CORS
cors_config = get_cors_settings()
app.add_middleware(CORSMiddleware, **cors_config)


@app.on_event("startup")
async def on_startup():
    await init_models()
    logger.info("Database tables ready")


# --- Errors: every failure leaves as {"success": false, "message": ...} ---

def _error(status_code: int, message, headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message}, headers=headers)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, exc.detail, getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")
    return _error(400, message)


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
    return _error(409, "Resource already exists or conflicts with existing data.")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _error(500, "Internal server error")


# Роуты
app.include_router(routes_auth.router, prefix="/auth")
app.include_router(routes_course.course_router, prefix="/courses")
app.include_router(routes_content.module_router)
app.include_router(routes_content.lesson_router)
app.include_router(routes_assessment.quiz_router)
app.include_router(routes_assessment.assignments_router)
app.include_router(routes_enrollment.router, prefix="/enrollments")
app.include_router(routes_payment.router, prefix="/payments")
app.include_router(routes_enrollment_request.request_router, prefix="/enrollment-requests")
app.include_router(routes_enrollment_request.admin_request_router, prefix="/admin/enrollment-requests")
app.include_router(routes_progress.router, prefix="/progress")
app.include_router(routes_notification.router, prefix="/notifications")


@app.get("/health")
async def health():
    return {"success": True, "data": {"status": "ok"}}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
