from fastapi import APIRouter

from legaldoc.api.v1.endpoints import (
    documents,
    health,
    reviews,
    signature
)

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(documents.router, prefix="/documents", tags=["documents"])
api_router.include_router(reviews.router, prefix="/reviews", tags=["reviews"])
api_router.include_router(signature.router, prefix="/signature", tags=["signature"])
