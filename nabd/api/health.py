from fastapi import APIRouter

from nabd.config import settings
from nabd.dependencies import ServicesDep

router = APIRouter()


@router.get("/health")
async def health(services: ServicesDep) -> dict:
    await services.registry.refresh_async()
    return {
        "status": "ok",
        "environment": settings.environment,
        "model_configured": services.llm.is_configured,
        "skills": len(services.registry.list_executable_skills()),
    }
