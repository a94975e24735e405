from fastapi import APIRouter

from app.api.routes import charts, export, generate, utils

api_router = APIRouter()
api_router.include_router(utils.router, tags=["utils"])
api_router.include_router(generate.router, tags=["generate"])
api_router.include_router(charts.router, tags=["charts"])
api_router.include_router(export.router, tags=["export"])
