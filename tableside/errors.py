from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from tableside.logging_config import get_logger

log = get_logger("errors")


def _body(message: str, **extra) -> dict:
    return {"error": message, "detail": message, **extra}


def _validation_message(err: dict) -> str:
    loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
    field = ".".join(loc)
    return f"{field}: {err.get('msg')}" if field else str(err.get("msg"))


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return JSONResponse(_body(message), status_code=exc.status_code, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = _validation_message(errors[0]) if errors else "Invalid request"
    log.warning("validation failed", extra={"path": request.url.path, "error": message})
    return JSONResponse(
        _body(message, errors=[_validation_message(e) for e in errors]),
        status_code=400,
    )


async def integrity_exception_handler(request: Request, exc: IntegrityError):
    log.warning("integrity error", extra={"path": request.url.path, "error": str(exc.orig)})
    return JSONResponse(_body("Conflicting or duplicate data"), status_code=400)


async def unhandled_exception_handler(request: Request, exc: Exception):
    log.error("unhandled error", exc_info=exc, extra={"path": request.url.path})
    return JSONResponse(_body("Internal server error"), status_code=500)


def install(app: FastAPI):
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
