"""
SkillUp — Learning Management System Backend
FastAPI entry point.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from skillup.core.config import settings
from skillup.core.errors import register_exception_handlers
from skillup.core.logging_config import setup_logging
from skillup.core.middleware import RequestLoggingMiddleware
from skillup.routers import admin, auth, faculty, student

VERSION = "1.0.0"

logger = setup_logging()

app = FastAPI(
    title=settings.APP_NAME,
    description="Students, faculty, batches, courses, tasks and grading for the SkillUp portal",
    version=VERSION,
    debug=settings.DEBUG,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request logging
app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)

# Include routers
app.include_router(auth.router)
app.include_router(admin.router)
app.include_router(faculty.router)
app.include_router(student.router)


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": VERSION,
        "status": "running",
    }


@app.get("/api/health")
async def health():
    return {"status": "healthy"}


logger.info("%s %s started", settings.APP_NAME, VERSION)
