# storefront/api/v1/api.py

from fastapi import APIRouter

from storefront.api.v1.endpoints import admin, coupons, downloads, orders, webhooks

# Main router for the v1 API.
api_router = APIRouter()

api_router.include_router(orders.router)
api_router.include_router(coupons.router)
api_router.include_router(webhooks.router)
api_router.include_router(downloads.router)
api_router.include_router(admin.router)
