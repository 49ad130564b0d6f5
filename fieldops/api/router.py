"""Central router that includes all sub-routers."""

from fastapi import APIRouter

from fieldops.api.dispatches import router as dispatches_router
from fieldops.api.planning import router as planning_router

api_router = APIRouter()
api_router.include_router(dispatches_router)
api_router.include_router(planning_router)
