"""Catalog repository - Database operations for services and variants"""

from typing import Optional

from sqlalchemy.orm import Session, selectinload

from ...models import Service, ServiceVariant, TeamMemberService


class CatalogRepository:
    """Repository for service and variant database operations"""

    @staticmethod
    def get_services(db: Session, workspace_id: str, include_variants: bool = False) -> list[Service]:
        query = db.query(Service).filter(Service.workspace_id == workspace_id)
        if include_variants:
            query = query.options(selectinload(Service.variants))
        return query.order_by(Service.name).all()

    @staticmethod
    def create_service(db: Session, **data) -> Service:
        service = Service(**data)
        db.add(service)
        db.commit()
        db.refresh(service)
        return service

    @staticmethod
    def update(db: Session, obj, **updates):
        """Apply a partial update to a service or variant"""
        for key, value in updates.items():
            setattr(obj, key, value)
        db.commit()
        db.refresh(obj)
        return obj

    @staticmethod
    def delete_service(db: Session, service: Service) -> None:
        """Delete a service together with its variants and staff assignments"""
        db.query(TeamMemberService).filter(TeamMemberService.service_id == service.id).delete(
            synchronize_session=False
        )
        db.query(ServiceVariant).filter(ServiceVariant.service_id == service.id).delete(
            synchronize_session=False
        )
        db.delete(service)
        db.commit()

    @staticmethod
    def get_variants(db: Session, service_id: str) -> list[ServiceVariant]:
        return (
            db.query(ServiceVariant)
            .filter(ServiceVariant.service_id == service_id)
            .order_by(ServiceVariant.name)
            .all()
        )

    @staticmethod
    def get_variant(db: Session, variant_id: str) -> Optional[ServiceVariant]:
        return db.query(ServiceVariant).filter(ServiceVariant.id == variant_id).first()

    @staticmethod
    def create_variant(db: Session, **data) -> ServiceVariant:
        variant = ServiceVariant(**data)
        db.add(variant)
        db.commit()
        db.refresh(variant)
        return variant

    @staticmethod
    def delete_variant(db: Session, variant: ServiceVariant) -> None:
        db.delete(variant)
        db.commit()
