"""Versioned API router: every module router is mounted under ``/api/v1``."""

from fastapi import APIRouter

from src.modules.export.router import router as export_router

v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(export_router)
