from fastapi import APIRouter
from loguru import logger

from src.api.endpoints import site, upload

api_router = APIRouter()

logger.debug("Registering site endpoints")
api_router.include_router(site.router, tags=["site"])
logger.debug("Registering upload endpoint")
api_router.include_router(upload.router, tags=["upload"])
