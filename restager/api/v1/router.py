from fastapi import APIRouter
from .endpoints import stage

api_router = APIRouter()

# 包含所有端点路由
api_router.include_router(stage.router, tags=["重新布置"])
