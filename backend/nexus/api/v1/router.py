"""API v1 router aggregation"""
from fastapi import APIRouter

from nexus.api.v1 import investor, accreditation, proposals, governance, admin

api_router = APIRouter()

api_router.include_router(investor.router, prefix="/investor", tags=["Investor"])
api_router.include_router(accreditation.router, prefix="/accreditation", tags=["Accreditation"])
api_router.include_router(proposals.router, prefix="/proposals", tags=["Proposals"])
api_router.include_router(governance.router, prefix="/governance", tags=["Governance"])
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])
