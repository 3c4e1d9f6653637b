import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager

from app.config import Config
from app.db.database import db
from app.routers import admin, health, paints, price_list
from app.exceptions import AppException, app_exception_handler, generic_exception_handler
from app.services.storage import get_storage

# Configure logging
logging.basicConfig(
    level=Config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    get_storage().ensure_root()
    await db.connect()
    yield
    await db.disconnect()


app = FastAPI(
    title="Ruda Paints API",
    version="1.0.0",
    description="Paint catalog, search and price list downloads",
    lifespan=lifespan
)

# Register exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

# Include routers
app.include_router(health.router)
app.include_router(admin.router)
app.include_router(paints.router)
app.include_router(price_list.router)

# Product images
app.mount("/uploads", StaticFiles(directory=Config.UPLOAD_DIR, check_dir=False), name="uploads")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000)
