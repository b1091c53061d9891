# FILE: officine/api/router.py
from fastapi import APIRouter

from officine.api import (
    routes_pharmacies,
    routes_stock_lots,
    routes_stock_movements,
    routes_alerts,
    routes_procurement,
    routes_sales,
)

api_router = APIRouter()

api_router.include_router(routes_pharmacies.router)
api_router.include_router(routes_stock_lots.router)
api_router.include_router(routes_stock_movements.router)
api_router.include_router(routes_alerts.router)
api_router.include_router(routes_procurement.router)
api_router.include_router(routes_sales.router)
