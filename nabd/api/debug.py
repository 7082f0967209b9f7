from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from nabd.dependencies import Services, ServicesDep, require_debug_token
from nabd.schemas.chat import KnowledgeUpsertRequest, OrchestrationPreview, PlanPreviewRequest
from nabd.schemas.knowledge import VectorStoreDocument
from nabd.schemas.trace import OrchestrationTrace

router = APIRouter(dependencies=[Depends(require_debug_token)])


@router.post("/plan", response_model=OrchestrationPreview)
async def preview_plan(body: PlanPreviewRequest, services: ServicesDep) -> OrchestrationPreview:
    await services.registry.refresh_async()
    return services.orchestrator.preview(body.content)


@router.get("/traces/latest", response_model=OrchestrationTrace)
async def latest_trace(
    services: ServicesDep, conversation_id: str | None = None
) -> OrchestrationTrace:
    trace = services.trace_store.latest(conversation_id)
    if trace is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "No trace recorded yet")
    return trace


@router.get("/traces", response_model=list[OrchestrationTrace])
async def trace_history(
    services: ServicesDep,
    conversation_id: str | None = None,
    limit: int = Query(default=10, ge=1, le=80),
) -> list[OrchestrationTrace]:
    return services.trace_store.history(conversation_id, limit)


@router.get("/rag/documents", response_model=list[VectorStoreDocument])
async def list_documents(services: ServicesDep) -> list[VectorStoreDocument]:
    return services.knowledge.list_documents()


@router.post("/rag/documents")
async def upsert_documents(body: KnowledgeUpsertRequest, services: ServicesDep) -> dict[str, Any]:
    await services.knowledge.upsert_async(body.documents)
    return {"upserted": len(body.documents), "total": len(services.knowledge.list_documents())}


def _skills_payload(services: Services) -> dict[str, Any]:
    registry = services.registry
    return {
        "diagnostics": registry.diagnostics(),
        "skills": [
            {
                "id": s.id,
                "name": s.name,
                "description": s.description,
                "category": s.manifest.category,
                "version": s.manifest.version,
                "format": s.format,
                "executable": s.is_executable,
                "location": str(s.skill_file_path),
            }
            for s in registry.list_skills()
        ],
    }


@router.get("/skills")
async def list_skills(services: ServicesDep) -> dict[str, Any]:
    await services.registry.refresh_async()
    return _skills_payload(services)


@router.post("/skills/reload")
async def reload_skills(services: ServicesDep) -> dict[str, Any]:
    await services.registry.refresh_async(force=True)
    return _skills_payload(services)


@router.get("/skills/prompt")
async def skills_prompt(services: ServicesDep) -> dict[str, Any]:
    await services.registry.refresh_async()
    return {
        "xml": services.registry.build_available_skills_xml(),
        "tool_definitions": services.registry.tool_definitions(),
    }
