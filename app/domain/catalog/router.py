"""Catalog router - FastAPI endpoints for services and service variants"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import TeamMember
from .schemas import ServiceCreate, ServiceUpdate, VariantCreate, VariantUpdate
from .service import CatalogService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/services", tags=["Services"])


def get_catalog_service(db: Session = Depends(get_db)) -> CatalogService:
    """Dependency injection for CatalogService"""
    return CatalogService(db)


# ============================================================================
# VARIANTS (registered before /{service_id} so "variants" is not taken as an id)
# ============================================================================


@router.get("/variants")
async def list_variants(
    serviceId: Optional[str] = Query(None),
    current_user: TeamMember = Depends(get_current_user),
    catalog: CatalogService = Depends(get_catalog_service),
):
    return catalog.list_variants(current_user, serviceId)


@router.post("/variants")
async def create_variant(
    data: VariantCreate,
    current_user: TeamMember = Depends(get_current_user),
    catalog: CatalogService = Depends(get_catalog_service),
):
    return catalog.create_variant(current_user, data)


@router.get("/variants/{variant_id}")
async def get_variant(
    variant_id: str,
    current_user: TeamMember = Depends(get_current_user),
    catalog: CatalogService = Depends(get_catalog_service),
):
    return catalog.get_variant(current_user, variant_id)


@router.patch("/variants/{variant_id}")
async def update_variant(
    variant_id: str,
    data: VariantUpdate,
    current_user: TeamMember = Depends(get_current_user),
    catalog: CatalogService = Depends(get_catalog_service),
):
    return catalog.update_variant(current_user, variant_id, data)


@router.delete("/variants/{variant_id}")
async def delete_variant(
    variant_id: str,
    current_user: TeamMember = Depends(get_current_user),
    catalog: CatalogService = Depends(get_catalog_service),
):
    return catalog.delete_variant(current_user, variant_id)


# ============================================================================
# SERVICES
# ============================================================================


@router.get("")
async def list_services(
    workspaceId: Optional[str] = Query(None),
    includeVariants: bool = Query(False),
    current_user: TeamMember = Depends(get_current_user),
    catalog: CatalogService = Depends(get_catalog_service),
):
    """Services in a workspace ordered by name, optionally with their variants"""
    return catalog.list_services(current_user, workspaceId, includeVariants)


@router.post("")
async def create_service(
    data: ServiceCreate,
    current_user: TeamMember = Depends(get_current_user),
    catalog: CatalogService = Depends(get_catalog_service),
):
    return catalog.create_service(current_user, data)


@router.get("/{service_id}")
async def get_service(
    service_id: str,
    current_user: TeamMember = Depends(get_current_user),
    catalog: CatalogService = Depends(get_catalog_service),
):
    return catalog.get_service(current_user, service_id)


@router.patch("/{service_id}")
async def update_service(
    service_id: str,
    data: ServiceUpdate,
    current_user: TeamMember = Depends(get_current_user),
    catalog: CatalogService = Depends(get_catalog_service),
):
    return catalog.update_service(current_user, service_id, data)


@router.delete("/{service_id}")
async def delete_service(
    service_id: str,
    current_user: TeamMember = Depends(get_current_user),
    catalog: CatalogService = Depends(get_catalog_service),
):
    """Delete a service and all of its variants (owners only)"""
    return catalog.delete_service(current_user, service_id)
