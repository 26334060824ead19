"""
API router configuration - combines all API endpoints.
"""
from fastapi import APIRouter
from kneecare.api.v1 import (
    activity, audit_logs, auth, consultations, diet, forum, health, kl_grades, medications,
    messages, notifications, predictions, progress, recommendations, relationships, users, weight, xrays,
)

# Create main API router
api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(relationships.router, prefix="/relationships", tags=["relationships"])
api_router.include_router(audit_logs.router, prefix="/audit-logs", tags=["audit"])
api_router.include_router(activity.router, prefix="/activity", tags=["activity"])
api_router.include_router(diet.router, prefix="/diet", tags=["diet"])
api_router.include_router(weight.router, prefix="/weight", tags=["weight"])
api_router.include_router(medications.router, prefix="/medications", tags=["medications"])
api_router.include_router(consultations.router, prefix="/consultations", tags=["consultations"])
api_router.include_router(messages.router, prefix="/messages", tags=["messages"])
api_router.include_router(forum.router, prefix="/forum", tags=["forum"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
api_router.include_router(xrays.router, prefix="/xrays", tags=["xrays"])
api_router.include_router(predictions.router, prefix="/predictions", tags=["predictions"])
api_router.include_router(recommendations.router, prefix="/recommendations", tags=["recommendations"])
api_router.include_router(progress.router, prefix="/progress", tags=["progress"])
api_router.include_router(kl_grades.router, prefix="/kl-grades", tags=["kl-grades"])
api_router.include_router(health.router, prefix="/health", tags=["health"])


@api_router.get("/")
async def api_root():
    """API root endpoint."""
    return {
        "message": "KneeCare Backend API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/v1/health/",
        "status": "operational",
    }
