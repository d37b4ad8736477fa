from typing import Annotated

from fastapi import Depends, Request

from meme_engine.services.artifact_store import ArtifactStore
from meme_engine.services.job_orchestrator import JobOrchestrator
from meme_engine.services.job_registry import JobRegistry


def get_orchestrator(request: Request) -> JobOrchestrator:
    return request.app.state.orchestrator


def get_artifact_store(request: Request) -> ArtifactStore:
    return get_orchestrator(request).store


def get_job_registry(request: Request) -> JobRegistry:
    return get_orchestrator(request).registry


Orchestrator = Annotated[JobOrchestrator, Depends(get_orchestrator)]
Store = Annotated[ArtifactStore, Depends(get_artifact_store)]
Registry = Annotated[JobRegistry, Depends(get_job_registry)]


def absolute_url(request: Request, path: str) -> str:
    """Absolute URL for ``path`` on the host the client used."""
    return f"{str(request.base_url).rstrip('/')}{path}"
