from fastapi import APIRouter

from stockroom.api.routes import audit_logs, auth, health, items, locations, posting, references, reports, stats, users

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(items.router)
for reference_router in references.routers:
    api_router.include_router(reference_router)
api_router.include_router(locations.router)
api_router.include_router(posting.router)
api_router.include_router(stats.router)
api_router.include_router(reports.router)
api_router.include_router(audit_logs.router)
