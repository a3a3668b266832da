"""
API路由汇总
"""

from fastapi import APIRouter

from . import comic_generation

api_router = APIRouter()

api_router.include_router(comic_generation.router, prefix="/api")
