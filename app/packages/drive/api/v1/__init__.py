"""API v1 汇总路由：统一挂载所有版本化的子路由。"""

from fastapi import APIRouter

from app.packages.drive.api.v1.endpoints import auth, cron, favorites, files, folders, maintenance, share, storage

api_router = APIRouter()
api_router.include_router(auth.router)
api_router.include_router(folders.router)
api_router.include_router(files.router)
api_router.include_router(storage.router)
api_router.include_router(favorites.router)
api_router.include_router(share.router)
api_router.include_router(cron.router)
api_router.include_router(maintenance.router)
