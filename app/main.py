from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.endpoints.api import api_router
from app.core.config import settings

app = FastAPI(title="Staging & Loading Operations API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin for origin in settings.CORS_ALLOW_ORIGINS.split(",") if origin] or ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
def health():
    return {"status": "up"}
