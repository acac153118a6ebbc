from fastapi import APIRouter

from app.api.v1 import approvals, rules

api_router = APIRouter()

api_router.include_router(approvals.router, prefix="/approvals", tags=["approvals"])
api_router.include_router(rules.router, prefix="/rules", tags=["rules"])
