"""
API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from kitchen.api.endpoints import auth, health, inventory, stock_movements

api_router = APIRouter()

# Auth (login, me, logout, user management)
api_router.include_router(auth.router)

# Inventory items and stock movements
api_router.include_router(inventory.router)
api_router.include_router(stock_movements.router)

# Health
api_router.include_router(health.router)
