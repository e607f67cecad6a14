from fastapi import APIRouter

from src.careteam.api.v1 import invitations, mfa, teams

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(teams.router)
api_router.include_router(invitations.router)
api_router.include_router(mfa.router)
