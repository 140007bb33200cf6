"""
API v1 Router
"""

from fastapi import APIRouter

from app.api.v1 import auth, todo_items, todo_lists

router = APIRouter()

# Include all endpoint routers
router.include_router(auth.router)
router.include_router(todo_lists.router)
router.include_router(todo_items.router)

__all__ = ["router"]
