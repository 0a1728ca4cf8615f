from typing import Literal

from fastapi import APIRouter, Request
from pydantic import BaseModel

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    # Matching still works without the model (lexical fallback), so a model
    # that is not ready yet does not make the service unhealthy.
    embeddings: Literal["ready", "loading", "disabled"]


@router.get("/health", response_model=HealthResponse, status_code=200)
async def healthcheck(request: Request):
    embedder = getattr(request.app.state, "embedder", None)
    if embedder is None:
        embeddings = "disabled"
    elif embedder.is_loaded:
        embeddings = "ready"
    else:
        embeddings = "loading"
    return {"status": "ok", "embeddings": embeddings}
