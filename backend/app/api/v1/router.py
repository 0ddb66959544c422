from fastapi import APIRouter
from app.api.v1.endpoints import booklets, students, editors, health

api_router = APIRouter()

# Deep health checks (use /health/ready for the load balancer)
api_router.include_router(health.router)


@api_router.get("/health", tags=["Health"])
async def health_check():
    """Simple health check endpoint for load balancer"""
    return {"status": "healthy", "service": "graduation-booklets"}


api_router.include_router(booklets.router)
api_router.include_router(students.router)
api_router.include_router(editors.router)
