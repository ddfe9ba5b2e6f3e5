"""Catalog service - Business logic for services and variants"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import ServiceVariant, TeamMember
from ...shared.access import validate_service_access, validate_workspace_access
from .repository import CatalogRepository
from .schemas import (
    ServiceCreate,
    ServiceResponse,
    ServiceUpdate,
    ServiceWithVariantsResponse,
    VariantCreate,
    VariantResponse,
    VariantUpdate,
)

logger = logging.getLogger(__name__)


class CatalogService:
    """Service layer for the workspace service catalog"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = CatalogRepository()

    # ============================================
    # Services
    # ============================================

    def list_services(self, user: TeamMember, workspace_id: Optional[str], include_variants: bool) -> dict:
        access = validate_workspace_access(self.db, user, workspace_id)
        services = self.repo.get_services(self.db, access.workspace_id, include_variants)
        schema = ServiceWithVariantsResponse if include_variants else ServiceResponse
        return {
            "services": [schema.model_validate(s) for s in services],
            "isStaff": access.is_staff,
        }

    def create_service(self, user: TeamMember, data: ServiceCreate) -> dict:
        access = validate_workspace_access(self.db, user, data.workspaceId)
        if not data.name:
            raise HTTPException(status_code=400, detail="Service name is required")
        if access.is_staff:
            raise HTTPException(status_code=403, detail="Staff members cannot create services")

        service = self.repo.create_service(
            self.db,
            workspace_id=access.workspace_id,
            name=data.name,
            description=data.description,
            color=data.color,
            category=data.category,
            active=data.active,
        )
        logger.info(f"✅ Service {service.id} created in workspace {access.workspace_id}")
        return {
            "success": True,
            "service": ServiceResponse.model_validate(service),
            "message": "Service created successfully",
        }

    def get_service(self, user: TeamMember, service_id: str) -> dict:
        service, access = validate_service_access(self.db, user, service_id)
        return {
            "service": ServiceWithVariantsResponse.model_validate(service),
            "isStaff": access.is_staff,
        }

    def update_service(self, user: TeamMember, service_id: str, data: ServiceUpdate) -> dict:
        service, access = validate_service_access(self.db, user, service_id)
        if access.is_staff:
            raise HTTPException(status_code=403, detail="Staff members cannot update services")

        updates = data.model_dump(exclude_unset=True)
        if "name" in updates and not updates["name"]:
            raise HTTPException(status_code=400, detail="Service name is required")

        service = self.repo.update(self.db, service, **updates)
        return {
            "success": True,
            "service": ServiceResponse.model_validate(service),
            "message": "Service updated successfully",
        }

    def delete_service(self, user: TeamMember, service_id: str) -> dict:
        service, access = validate_service_access(self.db, user, service_id)
        if access.is_staff:
            raise HTTPException(status_code=403, detail="Staff members cannot delete services")

        try:
            self.repo.delete_service(self.db, service)
        except Exception as e:
            logger.error(f"❌ Failed to delete service {service_id}: {e}")
            self.db.rollback()
            raise HTTPException(status_code=500, detail="Failed to delete service")

        logger.info(f"🗑️ Service {service_id} deleted")
        return {"success": True, "message": "Service deleted successfully"}

    # ============================================
    # Variants
    # ============================================

    def _get_variant(self, user: TeamMember, variant_id: str):
        variant = self.repo.get_variant(self.db, variant_id)
        if not variant:
            raise HTTPException(status_code=404, detail="Service variant not found")
        _, access = validate_service_access(self.db, user, variant.service_id)
        return variant, access

    def list_variants(self, user: TeamMember, service_id: Optional[str]) -> dict:
        if not service_id:
            raise HTTPException(status_code=400, detail="Service ID is required")
        _, access = validate_service_access(self.db, user, service_id)
        variants = self.repo.get_variants(self.db, service_id)
        return {
            "variants": [VariantResponse.model_validate(v) for v in variants],
            "isStaff": access.is_staff,
        }

    def create_variant(self, user: TeamMember, data: VariantCreate) -> dict:
        if not data.serviceId:
            raise HTTPException(status_code=400, detail="Service ID is required")
        if not data.name:
            raise HTTPException(status_code=400, detail="Variant name is required")

        _, access = validate_service_access(self.db, user, data.serviceId)
        if access.is_staff:
            raise HTTPException(status_code=403, detail="Staff members cannot create service variants")

        variant = self.repo.create_variant(
            self.db,
            service_id=data.serviceId,
            name=data.name,
            description=data.description,
            duration=data.duration,
            price=data.price,
            active=data.active,
        )
        return {
            "success": True,
            "variant": VariantResponse.model_validate(variant),
            "message": "Service variant created successfully",
        }

    def get_variant(self, user: TeamMember, variant_id: str) -> dict:
        variant, access = self._get_variant(user, variant_id)
        return {"variant": VariantResponse.model_validate(variant), "isStaff": access.is_staff}

    def update_variant(self, user: TeamMember, variant_id: str, data: VariantUpdate) -> dict:
        variant, access = self._get_variant(user, variant_id)
        if access.is_staff:
            raise HTTPException(status_code=403, detail="Staff members cannot update service variants")

        updates = data.model_dump(exclude_unset=True)
        if "name" in updates and not updates["name"]:
            raise HTTPException(status_code=400, detail="Variant name is required")

        variant: ServiceVariant = self.repo.update(self.db, variant, **updates)
        return {
            "success": True,
            "variant": VariantResponse.model_validate(variant),
            "message": "Service variant updated successfully",
        }

    def delete_variant(self, user: TeamMember, variant_id: str) -> dict:
        variant, access = self._get_variant(user, variant_id)
        if access.is_staff:
            raise HTTPException(status_code=403, detail="Staff members cannot delete service variants")

        self.repo.delete_variant(self.db, variant)
        return {"success": True, "message": "Service variant deleted successfully"}
