# tableside/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tableside import errors
from tableside.middleware import RequestIdMiddleware
from tableside.db import Base, engine
from tableside.config import settings
from tableside.logging_config import configure_logging, get_logger
import tableside.models  # noqa: F401  (registers tables)

from tableside.routers import auth, restaurant, staff, tables, qr, menu, departments
from tableside.routers import orders, dashboard, sessions, payments, bill_split

configure_logging(log_level=settings.LOG_LEVEL)
log = get_logger(__name__)

app = FastAPI(title="Tableside API", version="1.0.0")

@app.on_event("startup")
def init_db():
    Base.metadata.create_all(bind=engine)
    log.info("startup", extra={"env": settings.APP_ENV})

@app.on_event("shutdown")
def close_db():
    engine.dispose()

# Middlewares
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
errors.install(app)

app.include_router(auth.router)
app.include_router(restaurant.router)
app.include_router(staff.router)
app.include_router(tables.router)
app.include_router(qr.router)
app.include_router(menu.router)
app.include_router(departments.router)
app.include_router(orders.router)
app.include_router(dashboard.router)
app.include_router(sessions.router)
app.include_router(payments.router)
app.include_router(bill_split.router)

@app.get("/healthz")
def healthz():
    return {"ok": True}
