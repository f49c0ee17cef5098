from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import List, Optional, Any, Dict
import logging

from feature_loader.core import runtime
from feature_loader.loader.manager import ResourceManager
from feature_loader.resources.catalog import ResourceType

router = APIRouter(tags=['resources'])
logger = logging.getLogger(__name__)


def get_manager() -> ResourceManager:
    try:
        return runtime.get_manager()
    except RuntimeError:
        raise HTTPException(status_code=503, detail='resource manager not initialized')


class ResourceModel(BaseModel):
    key: str
    display_name: str
    type: str
    url: str
    dependencies: List[str]
    downloaded: bool
    enabled: bool
    loaded: bool


class ResourceDetail(ResourceModel):
    text: Optional[str] = None
    export_type: Optional[str] = None
    has_widget: bool = False
    dropdowns: List[str] = []


class LoaderStatus(BaseModel):
    version: str
    cache_version: Optional[str] = None
    cache_entries: int
    enabled_features: List[str]
    loaded: List[str]
    skipped_import: List[str]
    last_result: Optional[Dict[str, Any]] = None


class FetchResponse(BaseModel):
    scheduled: bool
    result: Optional[Dict[str, Any]] = None


def _to_model(manager: ResourceManager, key: str) -> ResourceModel:
    r = manager.registry.get(key)
    return ResourceModel(
        key=r.key,
        display_name=r.display_name,
        type=r.type.value,
        url=r.url,
        dependencies=list(r.dependencies),
        downloaded=r.downloaded,
        enabled=manager.settings.features.get(r.key) is True,
        loaded=r.key in manager.attributes,
    )


@router.get('/resources', response_model=List[ResourceModel])
def list_resources(manager: ResourceManager = Depends(get_manager)):
    return [_to_model(manager, key) for key in manager.registry.keys()]


@router.get('/resources/{key}', response_model=ResourceDetail)
def get_resource(key: str, manager: ResourceManager = Depends(get_manager)):
    resource = manager.registry.get(key)
    if resource is None:
        raise HTTPException(status_code=404, detail={'code': 'RESOURCE_NOT_FOUND', 'key': key})
    detail = ResourceDetail(**_to_model(manager, key).model_dump())
    if resource.type in (ResourceType.markup, ResourceType.style):
        detail.text = resource.text if resource.downloaded else None
    else:
        attrs = manager.attributes.get(key)
        if attrs is not None:
            detail.export_type = type(attrs.export).__name__
            detail.has_widget = attrs.widget is not None
            detail.dropdowns = [d.key for d in attrs.dropdowns]
    return detail


@router.get('/loader/status', response_model=LoaderStatus)
def loader_status(manager: ResourceManager = Depends(get_manager)):
    cache = manager.settings.cache
    return LoaderStatus(
        version=manager.settings.current_version,
        cache_version=cache.get('version'),
        cache_entries=len([k for k in cache if k != 'version']),
        enabled_features=manager.settings.enabled_features(),
        loaded=manager.attributes.keys(),
        skipped_import=list(manager.skipped_import),
        last_result=manager.last_result.summary() if manager.last_result else None,
    )


@router.post('/loader/fetch', response_model=FetchResponse)
async def trigger_fetch(wait: bool = False, manager: ResourceManager = Depends(get_manager)):
    if wait:
        result = await runtime.run_fetch()
        return FetchResponse(scheduled=False, result=result.summary())
    scheduled = runtime.schedule_refresh()
    logger.info("fetch pass requested scheduled=%s", scheduled)
    return FetchResponse(scheduled=scheduled)
