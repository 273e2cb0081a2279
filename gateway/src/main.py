import logging

import uvicorn

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from gateway.src.config import get_settings
from gateway.src.routes import health_router, runs_router
from gateway.src.services.queue import get_queue_length

logger = logging.getLogger(__name__)
settings = get_settings()

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting DeployX gateway")
    yield
    logger.info("Shutting down DeployX gateway")

app = FastAPI(
    title="DeployX",
    description="Pipeline trigger gateway for the DeployX worker",
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
app.include_router(health_router)
app.include_router(runs_router, prefix="/api")

@app.get("/")
async def root():
    return {
        "name": "DeployX",
        "version": "0.1.0",
        "docs": "/docs"
    }

@app.get("/api/queue")
async def queue_length():
    return {"queue_length": await get_queue_length()}

def main():
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
