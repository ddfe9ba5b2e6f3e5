"""Workspace service - Business logic for workspaces, onboarding and go-live checks"""

import logging
from datetime import datetime
from typing import Optional

import httpx
from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import TeamMember, Workspace
from ...services.geocoding_service import GeocodingNotConfigured, validate_address
from ...shared.access import get_primary_membership, validate_workspace_access
from ...shared.validators import format_other_choice, normalize_service_locations
from ..billing.repository import BillingRepository
from .repository import WorkspaceRepository
from .schemas import (
    BusinessLocationRequest,
    BusinessServicesRequest,
    CurrentSoftwareRequest,
    GoLiveRequest,
    HeardAboutUsRequest,
    JoinRequestCreate,
    JoinRequestRespond,
    OperatingHoursRequest,
    ServiceLocationsRequest,
    WorkspaceCreateRequest,
    WorkspaceProfileResponse,
    WorkspaceUpdateRequest,
)

logger = logging.getLogger(__name__)

SEARCH_LIMIT_MAX = 50
JOIN_RESPONSES = ("approved", "rejected")


class WorkspaceService:
    """Service layer for workspace business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = WorkspaceRepository()
        self.billing_repo = BillingRepository()

    def _update(self, workspace: Workspace, failure_message: str, **updates) -> Workspace:
        try:
            return self.repo.update(self.db, workspace, **updates)
        except Exception as e:
            logger.error(f"❌ {failure_message} for workspace {workspace.id}: {e}")
            self.db.rollback()
            raise HTTPException(status_code=500, detail=failure_message)

    # ============================================
    # Create / update
    # ============================================

    def create_workspace(self, user: TeamMember, data: WorkspaceCreateRequest) -> dict:
        """Create a workspace with the caller as its owner"""
        workspace_data = data.workspaceData.model_dump(exclude_unset=True)
        if not (workspace_data.get("name") or "").strip():
            raise HTTPException(status_code=400, detail="Workspace name is required")

        if workspace_data.get("service_locations") is not None:
            workspace_data["service_locations"] = normalize_service_locations(workspace_data["service_locations"])

        try:
            workspace = self.repo.create(
                self.db,
                **workspace_data,
                active_status=False,
                onboarding_complete=False,
            )
        except Exception as e:
            logger.error(f"❌ Error creating workspace: {e}")
            self.db.rollback()
            raise HTTPException(status_code=500, detail="Failed to create workspace")

        try:
            self.repo.add_member(self.db, workspace.id, user.id, "owner")
        except Exception as e:
            logger.error(f"❌ Error adding owner to workspace {workspace.id}, removing workspace: {e}")
            self.db.rollback()
            self.repo.delete(self.db, workspace)
            raise HTTPException(status_code=500, detail="Failed to add user to workspace")

        logger.info(f"✅ Workspace {workspace.id} created by {user.id}")
        return {
            "success": True,
            "message": "Workspace created successfully",
            "workspaceId": workspace.id,
        }

    def update_workspace(self, user: TeamMember, data: WorkspaceUpdateRequest) -> dict:
        access = validate_workspace_access(self.db, user, data.workspaceId)
        if data.workspaceData is None:
            raise HTTPException(status_code=400, detail="Workspace data is required")

        updates = data.workspaceData.model_dump(exclude_unset=True)
        if "name" in updates and not (updates["name"] or "").strip():
            raise HTTPException(status_code=400, detail="Workspace name is required")
        if updates.get("service_locations") is not None:
            updates["service_locations"] = normalize_service_locations(updates["service_locations"])

        workspace = self.repo.get_by_id(self.db, access.workspace_id)
        if not workspace:
            raise HTTPException(status_code=404, detail="Workspace not found")

        self._update(workspace, "Failed to update workspace", **updates)
        return {"success": True, "message": "Workspace updated successfully"}

    # ============================================
    # Go live
    # ============================================

    def _go_live_errors(self, workspace: Workspace) -> list[str]:
        errors = []

        if not self.repo.has_bookable_service(self.db, workspace.id):
            errors.append("At least one active service with an active variant is required")

        subscription = self.billing_repo.get_latest_subscription(self.db, workspace.id)
        has_valid_subscription = subscription is not None and (
            subscription.status == "active"
            or (
                subscription.status == "trialing"
                and subscription.trial_ends_at is not None
                and subscription.trial_ends_at > datetime.utcnow()
            )
        )
        if not has_valid_subscription:
            errors.append("An active subscription or valid trial is required")

        if not (workspace.stripe_connect_account_id and workspace.stripe_connect_onboarding_complete):
            errors.append("Stripe Connect onboarding must be completed")

        if not workspace.operating_hours:
            errors.append("Operating hours must be defined")

        if not (workspace.name and workspace.contact_email and workspace.contact_phone):
            errors.append("Essential business information (name, email, phone) must be complete")

        return errors

    def _resolve_owned_workspace(self, user: TeamMember, workspace_id: Optional[str]) -> Workspace:
        if not workspace_id:
            membership = get_primary_membership(self.db, user)
            if not membership:
                raise HTTPException(status_code=400, detail="Could not determine workspace ID")
            workspace_id = membership.workspace_id

        access = validate_workspace_access(self.db, user, workspace_id, "owner")
        workspace = self.repo.get_by_id(self.db, access.workspace_id)
        if not workspace:
            raise HTTPException(status_code=404, detail="Workspace not found")
        return workspace

    def get_go_live_status(self, user: TeamMember, workspace_id: Optional[str]) -> dict:
        workspace = self._resolve_owned_workspace(user, workspace_id)
        errors = self._go_live_errors(workspace)
        return {
            "isLive": bool(workspace.active_status),
            "isReadyToGoLive": not errors,
            "validationErrors": errors,
        }

    def set_go_live(self, user: TeamMember, data: GoLiveRequest) -> dict:
        workspace = self._resolve_owned_workspace(user, data.workspaceId)

        if data.deactivate:
            self._update(workspace, "Failed to update workspace status", active_status=False)
            logger.info(f"⏸️ Workspace {workspace.id} deactivated")
            return {
                "success": True,
                "isActive": False,
                "message": "Workspace has been deactivated and is no longer accepting bookings",
            }

        if not workspace.active_status:
            errors = self._go_live_errors(workspace)
            if errors:
                raise HTTPException(
                    status_code=400,
                    detail={"error": "Workspace is not ready to go live", "validationErrors": errors},
                )
            self._update(workspace, "Failed to update workspace status", active_status=True)
            logger.info(f"🚀 Workspace {workspace.id} is live")

        return {
            "success": True,
            "isActive": True,
            "message": "Workspace is now live and accepting bookings",
        }

    # ============================================
    # Discovery and join requests
    # ============================================

    def search(self, query: Optional[str], limit: int) -> dict:
        query = (query or "").strip()
        if not query:
            return {"success": True, "workspaces": []}

        limit = max(1, min(limit, SEARCH_LIMIT_MAX))
        workspaces = self.repo.search(self.db, query, limit)
        return {
            "success": True,
            "workspaces": [
                {
                    "id": w.id,
                    "name": w.name,
                    "contact_email": w.contact_email,
                    "website": w.website,
                    "logo_url": w.logo_url,
                }
                for w in workspaces
            ],
        }

    def create_join_request(self, user: TeamMember, data: JoinRequestCreate) -> dict:
        if not data.workspaceId:
            raise HTTPException(status_code=400, detail="Workspace ID is required")

        workspace = self.repo.get_by_id(self.db, data.workspaceId)
        if not workspace:
            raise HTTPException(status_code=404, detail="Workspace not found")

        if self.repo.get_membership(self.db, workspace.id, user.id):
            raise HTTPException(status_code=400, detail="You are already a member of this workspace")

        existing = self.repo.get_pending_join_request(self.db, workspace.id, user.id)
        if existing:
            return {
                "success": False,
                "message": "A pending request already exists",
                "requestId": existing.id,
            }

        try:
            join_request = self.repo.create_join_request(
                self.db,
                workspace_id=workspace.id,
                team_member_id=user.id,
                message=data.message,
                status="pending",
            )
        except Exception as e:
            logger.error(f"❌ Failed to create join request for {workspace.id}: {e}")
            self.db.rollback()
            raise HTTPException(status_code=500, detail="Failed to create join request")

        logger.info(f"📥 Join request {join_request.id} for workspace {workspace.id}")
        return {
            "success": True,
            "message": "Join request sent successfully",
            "requestId": join_request.id,
        }

    def respond_to_join_request(self, user: TeamMember, data: JoinRequestRespond) -> dict:
        if not data.requestId or not data.response:
            raise HTTPException(status_code=400, detail="Request ID and response are required")
        if data.response not in JOIN_RESPONSES:
            raise HTTPException(status_code=400, detail="Response must be 'approved' or 'rejected'")

        join_request = self.repo.get_join_request(self.db, data.requestId)
        if not join_request:
            raise HTTPException(status_code=404, detail="Join request not found")

        if join_request.status != "pending":
            return {
                "success": False,
                "message": f"This request has already been {join_request.status}",
            }

        responder = self.repo.get_membership(self.db, join_request.workspace_id, user.id)
        if not responder or not responder.active or responder.role != "owner":
            raise HTTPException(status_code=403, detail="Only workspace owners can respond to join requests")

        join_request.status = data.response
        join_request.responded_by = user.id
        join_request.responded_at = datetime.utcnow()
        try:
            self.db.commit()
        except Exception as e:
            logger.error(f"❌ Failed to update join request {join_request.id}: {e}")
            self.db.rollback()
            raise HTTPException(status_code=500, detail="Failed to update join request")

        if data.response == "approved":
            try:
                existing = self.repo.get_membership(self.db, join_request.workspace_id, join_request.team_member_id)
                if existing:
                    existing.active = True
                    self.db.commit()
                else:
                    self.repo.add_member(self.db, join_request.workspace_id, join_request.team_member_id, "staff")
            except Exception as e:
                logger.error(f"❌ Failed to add member from join request {join_request.id}, reverting: {e}")
                self.db.rollback()
                join_request.status = "pending"
                join_request.responded_by = None
                join_request.responded_at = None
                self.db.commit()
                raise HTTPException(status_code=500, detail="Failed to add user to workspace")

        return {
            "success": True,
            "message": "Join request approved" if data.response == "approved" else "Join request rejected",
        }

    # ============================================
    # Onboarding fields on the caller's workspace
    # ============================================

    def _user_workspace(self, user: TeamMember) -> Workspace:
        membership = get_primary_membership(self.db, user)
        workspace = self.repo.get_by_id(self.db, membership.workspace_id) if membership else None
        if not workspace:
            raise HTTPException(status_code=404, detail="Workspace not found for this user")
        return workspace

    def get_operating_hours(self, user: TeamMember) -> dict:
        workspace = self._user_workspace(user)
        return {"success": True, "operatingHours": workspace.operating_hours}

    def set_operating_hours(self, user: TeamMember, data: OperatingHoursRequest) -> dict:
        hours = data.operatingHours
        if not isinstance(hours, dict):
            raise HTTPException(status_code=400, detail="Operating hours object is required")
        for day, periods in hours.items():
            if not isinstance(periods, list) or not all(
                isinstance(p, dict) and p.get("open") and p.get("close") for p in periods
            ):
                raise HTTPException(
                    status_code=400, detail=f"Operating hours for {day} must be a list of open/close periods"
                )

        workspace = self._user_workspace(user)
        self._update(workspace, "Failed to update operating hours", operating_hours=hours)
        return {"success": True, "message": "Operating hours updated successfully"}

    def get_business_location(self, user: TeamMember) -> dict:
        workspace = self._user_workspace(user)
        return {
            "success": True,
            "address": workspace.address,
            "lat": workspace.lat,
            "lng": workspace.lng,
        }

    def set_business_location(self, user: TeamMember, data: BusinessLocationRequest) -> dict:
        if not isinstance(data.address, dict):
            raise HTTPException(status_code=400, detail="Address object is required")

        workspace = self._user_workspace(user)
        self._update(
            workspace,
            "Failed to update business location",
            address=data.address,
            lat=data.lat,
            lng=data.lng,
        )
        return {"success": True, "message": "Business location updated successfully"}

    def get_service_locations(self, user: TeamMember) -> dict:
        workspace = self._user_workspace(user)
        return {"success": True, "serviceLocations": workspace.service_locations}

    def set_service_locations(self, user: TeamMember, data: ServiceLocationsRequest) -> dict:
        if not isinstance(data.serviceLocations, list):
            raise HTTPException(status_code=400, detail="Service locations array is required")

        workspace = self._user_workspace(user)
        self._update(
            workspace,
            "Failed to update service locations",
            service_locations=normalize_service_locations(data.serviceLocations),
        )
        return {"success": True, "message": "Service locations updated successfully"}

    def get_heard_about_us(self, user: TeamMember) -> dict:
        workspace = self._user_workspace(user)
        return {"success": True, "heardAboutUs": workspace.heard_about_us}

    def set_heard_about_us(self, user: TeamMember, data: HeardAboutUsRequest) -> dict:
        if not data.source:
            raise HTTPException(status_code=400, detail="Source is required")
        if data.source == "other" and not data.otherSource:
            raise HTTPException(
                status_code=400, detail="Other source value is required when 'other' is selected"
            )

        workspace = self._user_workspace(user)
        self._update(
            workspace,
            "Failed to update heard about us data",
            heard_about_us=format_other_choice(data.source, data.otherSource),
            onboarding_complete=True,
        )
        logger.info(f"✅ Onboarding complete for workspace {workspace.id}")
        return {"success": True, "message": "Heard about us data updated successfully"}

    def get_current_software(self, user: TeamMember) -> dict:
        workspace = self._user_workspace(user)
        return {"success": True, "currentSoftware": workspace.current_software}

    def set_current_software(self, user: TeamMember, data: CurrentSoftwareRequest) -> dict:
        if not data.software:
            raise HTTPException(status_code=400, detail="Software is required")
        if data.software == "other" and not data.otherSoftware:
            raise HTTPException(
                status_code=400, detail="Other software value is required when 'other' is selected"
            )

        workspace = self._user_workspace(user)
        self._update(
            workspace,
            "Failed to update current software data",
            current_software=format_other_choice(data.software, data.otherSoftware),
        )
        return {"success": True, "message": "Current software data updated successfully"}

    def get_business_services(self, user: TeamMember) -> dict:
        workspace = self._user_workspace(user)
        return {"success": True, "businessType": workspace.business_type or {}}

    def set_business_services(self, user: TeamMember, data: BusinessServicesRequest) -> dict:
        if not isinstance(data.services, list):
            raise HTTPException(status_code=400, detail="Services array is required")

        business_type = {"services": data.services}
        if data.otherService:
            business_type["otherService"] = data.otherService

        workspace = self._user_workspace(user)
        self._update(workspace, "Failed to update services", business_type=business_type)
        return {"success": True, "message": "Services updated successfully"}

    # ============================================
    # Profile lookups
    # ============================================

    def get_user_workspace(self, user: TeamMember) -> dict:
        membership = get_primary_membership(self.db, user)
        workspace = self.repo.get_by_id(self.db, membership.workspace_id) if membership else None
        if not workspace:
            return {
                "success": False,
                "error": "No workspace associated with this user",
                "code": "NO_WORKSPACE",
            }
        return {
            "success": True,
            "workspace": {"id": workspace.id, "name": workspace.name, "website": workspace.website},
        }

    def get_workspace_profile(self, user: TeamMember) -> dict:
        membership = get_primary_membership(self.db, user)
        if not membership:
            raise HTTPException(status_code=404, detail="No workspace associated with this user")
        workspace = self.repo.get_by_id(self.db, membership.workspace_id)
        if not workspace:
            raise HTTPException(status_code=404, detail="Workspace not found")
        return {
            "success": True,
            "workspace": WorkspaceProfileResponse.model_validate(workspace),
            "role": membership.role,
        }

    # ============================================
    # Account status (auth flow helpers)
    # ============================================

    def check_workspace_status(self, user: TeamMember) -> dict:
        """Where the frontend should send the user after sign-in"""
        membership = get_primary_membership(self.db, user)
        if not membership:
            invitation = (
                self.repo.get_pending_invitation_for_email(self.db, user.email) if user.email else None
            )
            if invitation and invitation.expires_at > datetime.utcnow():
                redirect_url = f"/auth/accept-invitation?token={invitation.token}"
            else:
                redirect_url = "/onboarding/workspace-choice"
            return {"hasWorkspace": False, "onboardingComplete": False, "redirectUrl": redirect_url}

        workspace = self.repo.get_by_id(self.db, membership.workspace_id)
        onboarding_complete = bool(workspace and workspace.onboarding_complete)
        return {
            "hasWorkspace": True,
            "onboardingComplete": onboarding_complete,
            "redirectUrl": "/dashboard" if onboarding_complete else "/onboarding/workspace-choice",
        }

    def check_user_exists(self, email: Optional[str]) -> dict:
        if not email or not isinstance(email, str):
            raise HTTPException(status_code=400, detail="Email is required")

        member = self.repo.get_auth_linked_member_by_email(self.db, email.strip())
        if not member:
            return {"exists": False}
        return {"exists": True, "provider": member.auth_provider or "email"}


async def validate_business_address(address: Optional[str]) -> dict:
    """Geocode an address for the onboarding location step"""
    if not address or not address.strip():
        raise HTTPException(status_code=400, detail="Address is required")

    try:
        return await validate_address(address.strip())
    except GeocodingNotConfigured:
        logger.error("❌ GOOGLE_MAPS_API_KEY not configured")
        raise HTTPException(status_code=500, detail="Google Maps API key is not configured")
    except httpx.HTTPError as e:
        logger.error(f"❌ Geocoding request failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to validate address")
