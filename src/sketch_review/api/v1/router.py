"""V1 API router -- aggregates all v1 endpoint routers."""

from __future__ import annotations

from fastapi import APIRouter

from src.sketch_review.api.v1 import deals, health, po_quotes, sketch_options

router = APIRouter()

router.include_router(health.router)
router.include_router(deals.router)
router.include_router(po_quotes.router)
router.include_router(sketch_options.router)
