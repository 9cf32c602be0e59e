from fastapi import APIRouter

from timeledger.api.activity_codes import router as activity_codes_router
from timeledger.api.audit import router as audit_router
from timeledger.api.projects import router as projects_router
from timeledger.api.time_entries import router as time_entries_router
from timeledger.api.timesheets import router as timesheets_router

api_router = APIRouter()
api_router.include_router(activity_codes_router)
api_router.include_router(projects_router)
api_router.include_router(time_entries_router)
api_router.include_router(timesheets_router)
api_router.include_router(audit_router)
