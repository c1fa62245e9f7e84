import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from api.src.config import get_settings
from api.src.db.database import init_db
from api.src.routes import ROUTERS

logger = logging.getLogger(__name__)
settings = get_settings()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting ReleaseTrain API")
    await init_db()
    yield
    # Shutdown
    logger.info("Shutting down ReleaseTrain API")

app = FastAPI(
    title="ReleaseTrain",
    description="Release pipeline for serverless application stacks",
    version="0.1.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
for router, prefix in ROUTERS:
    app.include_router(router, prefix=prefix)

@app.get("/")
async def root():
    return {
        "name": "ReleaseTrain",
        "version": "0.1.0",
        "docs": "/docs"
    }

if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
