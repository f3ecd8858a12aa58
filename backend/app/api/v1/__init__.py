"""
API v1 Routes
Progetto: Garage Documents (Documenti Commerciali Officina)

Router versione 1 dell'API.
"""

from fastapi import APIRouter

from app.api.v1 import catalog, customers, invoices, quotations, work_orders

# Router aggregato per v1
api_v1_router = APIRouter(prefix="/api/v1")

# Includi i router dei moduli
api_v1_router.include_router(customers.router)
api_v1_router.include_router(catalog.router)
api_v1_router.include_router(quotations.router)
api_v1_router.include_router(work_orders.router)
api_v1_router.include_router(invoices.router)

# Esportazione
__all__ = ["api_v1_router"]
