"""Switchkeeper - dead-man's switch notification API."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup: Create tables
    from app.database import Base, engine
    
    # Import all models so they're registered with Base
    from app import models  # noqa: F401
    
    Base.metadata.create_all(bind=engine)
    
    yield
    # Shutdown: cleanup if needed


app = FastAPI(
    title=settings.app_name,
    description="Check in, or your message goes out",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "app": settings.app_name}


# Import and include routers
from app.api import checkins, cron, recipients, switches, users  # noqa: E402

app.include_router(cron.router, prefix="/api")
app.include_router(checkins.router, prefix="/api")
app.include_router(switches.router, prefix="/api")
app.include_router(recipients.router, prefix="/api")
app.include_router(users.router, prefix="/api")
