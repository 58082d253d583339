from fastapi import APIRouter

from app.api.routes import admin, applications, email_check, health, jobs, users

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(users.router, prefix="/api/users", tags=["users"])
api_router.include_router(jobs.router, prefix="/api/jobs", tags=["jobs"])
api_router.include_router(applications.router, prefix="/api/applications", tags=["applications"])
api_router.include_router(admin.router, prefix="/api/admin", tags=["admin"])
api_router.include_router(email_check.router, prefix="/api/test-email", tags=["email"])
