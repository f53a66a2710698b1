"""
Available models endpoint.

Returns the list of selectable chat models.
"""

from fastapi import APIRouter

from app.api.deps import CurrentUser
from app.core.config import get_settings
from app.models.chat import ModelOption
from app.services.model_catalog import MODEL_CATALOG, resolve_model

router = APIRouter()


@router.get("")
async def list_available_models(user: CurrentUser):
    """List available AI models for model selection."""
    settings = get_settings()
    models = [
        ModelOption(id=spec.id, name=spec.name, provider=spec.provider)
        for spec in MODEL_CATALOG.values()
    ]
    return {
        "default_model_id": resolve_model(None, settings).id,
        "models": [m.model_dump() for m in models],
    }
