# app/routes.py

from typing import Tuple
from fastapi import APIRouter, HTTPException, status
from fastapi.responses import ORJSONResponse
from app.database import get_database, save_field_instance
from app.models import (
    FormBuildRequest, FormBuildResponse, OptionLimitSettings, PartialUpdateRequest, PartialUpdateResponse,
    SettingsForm,
)
from app.store import store
from app.services.configuration import apply_settings, build_settings_form
from app.services.entity_store import EntityStoreError, InMemoryEntityStore
from app.services.forms import RequestContext, ajax_response, entity_form_alter, form_build_response
from app.services.metadata import MetadataProvider

router = APIRouter()

def _services() -> Tuple[MetadataProvider, InMemoryEntityStore]:
    """
    Request-scoped views over the store; raises 503 while data is loading.
    """
    if not store.is_ready:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Data is still being loaded. Please try again later."
        )
    return MetadataProvider(store.cache), InMemoryEntityStore(store.cache, ready=store.is_ready)

def _check_bundle(metadata: MetadataProvider, entity_kind: str, bundle: str) -> None:
    if not metadata.has_bundle(entity_kind, bundle):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Bundle '{entity_kind}:{bundle}' not found")

@router.get("/health/ready", tags=["Health"])
def get_readiness_status():
    """
    Readiness probe to check if the initial data load is complete.
    """
    if store.is_ready:
        return {"status": "ready"}
    return ORJSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "loading_data"}
    )

@router.get("/fields/{entity_kind}/{bundle}/{field_name}/option-limit", tags=["Settings"], response_model=SettingsForm)
def get_option_limit_settings(entity_kind: str, bundle: str, field_name: str):
    """
    Returns the option limit controls for a field instance's settings form.
    """
    metadata, _ = _services()
    try:
        instance = metadata.get_field_instance(entity_kind, bundle, field_name)
        definition = metadata.get_field_definition(entity_kind, field_name)
    except KeyError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    form = build_settings_form(definition, instance, metadata)
    if form is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Field '{field_name}' is not a reference field")
    return form

@router.put("/fields/{entity_kind}/{bundle}/{field_name}/option-limit", tags=["Settings"], response_model=OptionLimitSettings)
async def put_option_limit_settings(entity_kind: str, bundle: str, field_name: str, settings: OptionLimitSettings):
    """
    Validates and saves the option limit settings of a field instance.
    """
    metadata, _ = _services()
    try:
        instance = metadata.get_field_instance(entity_kind, bundle, field_name)
        definition = metadata.get_field_definition(entity_kind, field_name)
    except KeyError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    try:
        updated = apply_settings(definition, instance, settings, metadata)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    try:
        await save_field_instance(get_database(), updated)
    except RuntimeError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except KeyError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    store.replace_field_instance(updated)
    return updated.option_limit

@router.post("/forms/build", tags=["Forms"], response_model=FormBuildResponse)
def build_form(request: FormBuildRequest):
    """
    Computes the options of every option-limited field of an entity form.
    """
    metadata, entity_store = _services()
    _check_bundle(metadata, request.entity_kind, request.bundle)
    context = RequestContext(metadata, entity_store, submitted=request.values)
    try:
        entity_form_alter(context, request.entity_kind, request.bundle, request.entity_id)
    except KeyError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except EntityStoreError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return form_build_response(context)

@router.post("/forms/partial-update", tags=["Forms"], response_model=PartialUpdateResponse)
def partial_update(request: PartialUpdateRequest):
    """
    Recomputes the option-limited field fed by the changed element, if any.
    """
    metadata, entity_store = _services()
    _check_bundle(metadata, request.entity_kind, request.bundle)
    context = RequestContext(
        metadata, entity_store,
        submitted=request.values,
        triggering_element=request.triggering_element,
    )
    try:
        entity_form_alter(context, request.entity_kind, request.bundle, request.entity_id)
    except KeyError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except EntityStoreError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return ajax_response(context)
