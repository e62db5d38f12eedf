"""ProcureFlow: API v1 router aggregation."""
from fastapi import APIRouter

from procureflow.api.v1.endpoints import material_requests, purchase_orders

api_router = APIRouter()

api_router.include_router(material_requests.router, prefix="/material-requests", tags=["material-requests"])
api_router.include_router(purchase_orders.router, prefix="/purchase-orders", tags=["purchase-orders"])
