from fastapi import APIRouter

from app.api.v1 import customers, import_routes, orders, reports

api_router = APIRouter()

api_router.include_router(customers.router, prefix="/customers", tags=["customers"])
api_router.include_router(reports.router, prefix="/orders", tags=["reports"])
api_router.include_router(import_routes.router, prefix="/orders", tags=["import"])
api_router.include_router(orders.router, prefix="/orders", tags=["orders"])
