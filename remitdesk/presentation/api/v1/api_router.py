"""
Main API router for version 1 of the RemitDesk API.

Aggregates all endpoint routers for this version.
"""

from fastapi import APIRouter

from remitdesk.presentation.api.v1.endpoints.transactions import router as transactions_router

api_v1_router = APIRouter()

api_v1_router.include_router(transactions_router, prefix="/transactions", tags=["Transactions"])
