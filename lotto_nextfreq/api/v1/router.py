"""Aggregate API v1 router."""

from fastapi import APIRouter

from lotto_nextfreq.api.v1.endpoints import draws, premium

api_router = APIRouter()

api_router.include_router(draws.router, prefix="/draws", tags=["draws"])
api_router.include_router(premium.router, prefix="/premium", tags=["premium analysis"])
