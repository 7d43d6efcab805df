import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from .config import settings
from .dependencies import get_notifier
from .errors import WorkflowError
from .notifications import emit
from .routers import admin, bookings, candidates, elections, facilities

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME, version="1.0.0")


# --- Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS or ["*"],  # configure properly in prod
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Domain errors ---
@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    logger.info("%s %s refused: %s (%s)", request.method, request.url.path, exc.code, exc.message)
    emit(get_notifier(), "error", exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


# --- Routers ---
app.include_router(elections.router)
app.include_router(candidates.router)
app.include_router(admin.router)
app.include_router(facilities.router)
app.include_router(bookings.router)


# --- Root endpoint ---
@app.get("/", tags=["Health"])
def root():
    return {
        "message": "Campus Operations API",
        "docs_url": "/docs",
        "redoc_url": "/redoc",
    }


# --- Lifecycle Events ---
@app.on_event("startup")
async def startup_event():
    logger.info("Application startup - %s ready (store backend: %s)", settings.PROJECT_NAME, settings.STORE_BACKEND)


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Application shutdown")


# --- Run with uvicorn (dev only, not for gunicorn/production) ---
if __name__ == "__main__":
    uvicorn.run("campusops.main:app", host="0.0.0.0", port=8000, reload=True)
