from fastapi import APIRouter

from app.api.v1.endpoints import activity, sheets

api_router = APIRouter()

api_router.include_router(sheets.router, prefix="/sheets", tags=["Sheets"])
api_router.include_router(activity.router, tags=["Activity"])
