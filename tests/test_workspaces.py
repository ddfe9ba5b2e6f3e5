"""Workspaces: creation, go-live readiness, discovery, join requests, onboarding and auth-flow helpers"""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from conftest import auth_headers, create_member, create_subscription

from app.models import Workspace, WorkspaceInvitation, WorkspaceJoinRequest, WorkspaceMember
from app.services.geocoding_service import GeocodingNotConfigured


@pytest.fixture
def ready_workspace(db, workspace, variant, plan):
    """Workspace meeting every go-live requirement"""
    create_subscription(db, workspace, plan)
    workspace.stripe_connect_account_id = "acct_ready"
    workspace.stripe_connect_onboarding_complete = True
    workspace.operating_hours = {"monday": [{"open": "09:00", "close": "17:00"}]}
    db.commit()
    return workspace


class TestCreateAndUpdate:
    def test_create_makes_caller_owner(self, client, db, outsider):
        response = client.post(
            "/api/workspace/create",
            json={
                "workspaceData": {
                    "name": "Fresh Fades",
                    "contact_email": "Hi@Fades.example.com",
                    "service_locations": ["instore", "CLIENTLOCATION"],
                    "unknown_field": "ignored",
                }
            },
            headers=auth_headers(outsider),
        )

        assert response.status_code == 200
        workspace_id = response.json()["workspaceId"]
        workspace = db.query(Workspace).filter_by(id=workspace_id).one()
        assert workspace.contact_email == "hi@fades.example.com"
        assert workspace.service_locations == ["inStore", "clientLocation"]
        assert workspace.active_status is False
        membership = db.query(WorkspaceMember).filter_by(workspace_id=workspace_id).one()
        assert membership.team_member_id == outsider.id
        assert membership.role == "owner"

    def test_create_requires_name(self, client, outsider):
        response = client.post(
            "/api/workspace/create", json={"workspaceData": {"name": "  "}}, headers=auth_headers(outsider)
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Workspace name is required"

    def test_invalid_phone_rejected(self, client, outsider):
        response = client.post(
            "/api/workspace/create",
            json={"workspaceData": {"name": "X", "contact_phone": "12"}},
            headers=auth_headers(outsider),
        )
        assert response.status_code == 422

    def test_update(self, client, db, owner, workspace):
        response = client.post(
            "/api/workspace/update",
            json={"workspaceId": workspace.id, "workspaceData": {"website": "https://glow.example.com"}},
            headers=auth_headers(owner),
        )

        assert response.status_code == 200
        db.refresh(workspace)
        assert workspace.website == "https://glow.example.com"
        assert workspace.name == "Glow Studio"

    def test_update_needs_membership(self, client, outsider, workspace):
        response = client.post(
            "/api/workspace/update",
            json={"workspaceId": workspace.id, "workspaceData": {"name": "Taken"}},
            headers=auth_headers(outsider),
        )
        assert response.status_code == 403


class TestGoLive:
    def test_status_lists_missing_requirements(self, client, owner, workspace):
        response = client.get(
            "/api/workspace/go-live", params={"workspaceId": workspace.id}, headers=auth_headers(owner)
        )

        body = response.json()
        assert body["isLive"] is False
        assert body["isReadyToGoLive"] is False
        assert "At least one active service with an active variant is required" in body["validationErrors"]
        assert "Stripe Connect onboarding must be completed" in body["validationErrors"]
        assert "Operating hours must be defined" in body["validationErrors"]

    def test_activate_when_ready(self, client, db, owner, ready_workspace):
        response = client.post(
            "/api/workspace/go-live", json={"workspaceId": ready_workspace.id}, headers=auth_headers(owner)
        )

        assert response.status_code == 200
        assert response.json()["isActive"] is True
        db.refresh(ready_workspace)
        assert ready_workspace.active_status is True

    def test_activate_twice_stays_live(self, client, owner, ready_workspace):
        body = {"workspaceId": ready_workspace.id}
        client.post("/api/workspace/go-live", json=body, headers=auth_headers(owner))

        response = client.post("/api/workspace/go-live", json=body, headers=auth_headers(owner))
        assert response.json()["isActive"] is True

    def test_not_ready_is_400(self, client, owner, workspace):
        response = client.post(
            "/api/workspace/go-live", json={"workspaceId": workspace.id}, headers=auth_headers(owner)
        )

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "Workspace is not ready to go live"

    def test_expired_trial_does_not_count(self, client, db, owner, workspace, variant, plan):
        create_subscription(db, workspace, plan, status="trialing", trial_ends_at=datetime.utcnow() - timedelta(days=1))

        response = client.get(
            "/api/workspace/go-live", params={"workspaceId": workspace.id}, headers=auth_headers(owner)
        )
        assert "An active subscription or valid trial is required" in response.json()["validationErrors"]

    def test_deactivate(self, client, db, owner, workspace):
        workspace.active_status = True
        db.commit()

        response = client.post(
            "/api/workspace/go-live",
            json={"workspaceId": workspace.id, "deactivate": True},
            headers=auth_headers(owner),
        )

        assert response.json()["isActive"] is False
        db.refresh(workspace)
        assert workspace.active_status is False

    def test_staff_cannot_go_live(self, client, staff, workspace):
        response = client.post(
            "/api/workspace/go-live", json={"workspaceId": workspace.id}, headers=auth_headers(staff)
        )
        assert response.status_code == 403

    def test_workspace_resolved_from_membership(self, client, owner, workspace):
        response = client.get("/api/workspace/go-live", headers=auth_headers(owner))
        assert response.status_code == 200


class TestSearchAndJoinRequests:
    def test_search_by_name(self, client, workspace):
        response = client.get("/api/workspace/search", params={"query": "glow"})
        assert [w["name"] for w in response.json()["workspaces"]] == ["Glow Studio"]

    def test_search_wildcards_match_literally(self, client, db, workspace):
        db.add(Workspace(name="Half_Off 50% Spa", contact_email="spa@example.com", contact_phone="+15555550111"))
        db.commit()

        for query, expected in (("%", ["Half_Off 50% Spa"]), ("_", ["Half_Off 50% Spa"]), ("w_s", [])):
            response = client.get("/api/workspace/search", params={"query": query})
            assert [w["name"] for w in response.json()["workspaces"]] == expected

    def test_blank_search_is_empty(self, client, workspace):
        response = client.get("/api/workspace/search", params={"query": "  "})
        assert response.json() == {"success": True, "workspaces": []}

    def test_join_request_lifecycle(self, client, db, owner, outsider, workspace):
        created = client.post(
            "/api/workspace/join-request",
            json={"workspaceId": workspace.id, "message": "Let me in"},
            headers=auth_headers(outsider),
        )
        request_id = created.json()["requestId"]

        duplicate = client.post(
            "/api/workspace/join-request", json={"workspaceId": workspace.id}, headers=auth_headers(outsider)
        )
        assert duplicate.json()["message"] == "A pending request already exists"

        approved = client.post(
            "/api/workspace/join-request/respond",
            json={"requestId": request_id, "response": "approved"},
            headers=auth_headers(owner),
        )
        assert approved.json()["message"] == "Join request approved"

        db.expire_all()
        membership = db.query(WorkspaceMember).filter_by(team_member_id=outsider.id).one()
        assert membership.role == "staff"

        again = client.post(
            "/api/workspace/join-request/respond",
            json={"requestId": request_id, "response": "rejected"},
            headers=auth_headers(owner),
        )
        assert again.json() == {"success": False, "message": "This request has already been approved"}

    def test_member_cannot_request(self, client, staff, workspace):
        response = client.post(
            "/api/workspace/join-request", json={"workspaceId": workspace.id}, headers=auth_headers(staff)
        )
        assert response.json()["detail"] == "You are already a member of this workspace"

    def test_staff_cannot_respond(self, client, db, staff, outsider, workspace):
        join_request = WorkspaceJoinRequest(workspace_id=workspace.id, team_member_id=outsider.id)
        db.add(join_request)
        db.commit()

        response = client.post(
            "/api/workspace/join-request/respond",
            json={"requestId": join_request.id, "response": "approved"},
            headers=auth_headers(staff),
        )
        assert response.status_code == 403

    def test_invalid_response_value(self, client, owner):
        response = client.post(
            "/api/workspace/join-request/respond",
            json={"requestId": "r1", "response": "maybe"},
            headers=auth_headers(owner),
        )
        assert response.json()["detail"] == "Response must be 'approved' or 'rejected'"


class TestOnboarding:
    def test_operating_hours_round_trip(self, client, owner, workspace):
        hours = {"monday": [{"open": "09:00", "close": "17:00"}], "sunday": []}
        saved = client.post(
            "/api/workspace/operating-hours", json={"operatingHours": hours}, headers=auth_headers(owner)
        )
        assert saved.status_code == 200

        loaded = client.get("/api/workspace/operating-hours", headers=auth_headers(owner))
        assert loaded.json()["operatingHours"] == hours

    def test_operating_hours_must_be_object(self, client, owner, workspace):
        response = client.post(
            "/api/workspace/operating-hours", json={"operatingHours": ["monday"]}, headers=auth_headers(owner)
        )
        assert response.json()["detail"] == "Operating hours object is required"

    def test_heard_about_us_completes_onboarding(self, client, db, owner, workspace):
        response = client.post(
            "/api/workspace/heard-about-us",
            json={"source": "other", "otherSource": "a friend"},
            headers=auth_headers(owner),
        )

        assert response.status_code == 200
        db.refresh(workspace)
        assert workspace.heard_about_us == "other: a friend"
        assert workspace.onboarding_complete is True

    def test_other_software_needs_value(self, client, owner, workspace):
        response = client.post(
            "/api/workspace/current-software", json={"software": "other"}, headers=auth_headers(owner)
        )
        assert response.json()["detail"] == "Other software value is required when 'other' is selected"

    def test_business_services(self, client, owner, workspace):
        client.post(
            "/api/workspace/services",
            json={"services": ["hair", "nails"], "otherService": "tattoo"},
            headers=auth_headers(owner),
        )

        response = client.get("/api/workspace/services", headers=auth_headers(owner))
        assert response.json()["businessType"] == {"services": ["hair", "nails"], "otherService": "tattoo"}

    def test_business_location(self, client, owner, workspace):
        client.post(
            "/api/workspace/business-location",
            json={"address": {"city": "Austin"}, "lat": 30.27, "lng": -97.74},
            headers=auth_headers(owner),
        )

        response = client.get("/api/workspace/business-location", headers=auth_headers(owner))
        assert response.json()["address"] == {"city": "Austin"}
        assert response.json()["lat"] == 30.27

    def test_no_workspace_is_404(self, client, outsider):
        response = client.get("/api/workspace/operating-hours", headers=auth_headers(outsider))
        assert response.status_code == 404


class TestAccountStatus:
    def test_user_workspace_missing(self, client, outsider):
        response = client.get("/api/workspace/get-user-workspace", headers=auth_headers(outsider))
        assert response.json()["code"] == "NO_WORKSPACE"

    def test_workspace_profile_includes_role(self, client, staff, workspace):
        response = client.get("/api/workspace/get-workspace-profile", headers=auth_headers(staff))
        assert response.json()["role"] == "staff"
        assert response.json()["workspace"]["name"] == "Glow Studio"

    def test_status_redirects_to_onboarding(self, client, owner, workspace):
        response = client.get("/api/auth/check-workspace-status", headers=auth_headers(owner))
        assert response.json() == {
            "hasWorkspace": True,
            "onboardingComplete": False,
            "redirectUrl": "/onboarding/workspace-choice",
        }

    def test_status_with_pending_invitation(self, client, db, outsider, workspace):
        db.add(
            WorkspaceInvitation(
                workspace_id=workspace.id,
                email=outsider.email,
                token="tok-status",
                expires_at=datetime.utcnow() + timedelta(days=2),
            )
        )
        db.commit()

        response = client.get("/api/auth/check-workspace-status", headers=auth_headers(outsider))
        assert response.json()["redirectUrl"] == "/auth/accept-invitation?token=tok-status"

    def test_check_user_exists(self, client, db, owner):
        create_member(db, "unlinked@example.com", linked=False)

        assert client.post("/api/check-user-exists", json={"email": "OWNER@example.com"}).json() == {
            "exists": True,
            "provider": "email",
        }
        assert client.post("/api/check-user-exists", json={"email": "unlinked@example.com"}).json() == {
            "exists": False
        }
        assert client.post("/api/check-user-exists", json={}).status_code == 400


class TestValidateAddress:
    def test_requires_address(self, client):
        response = client.post("/api/validate-address", json={"address": " "})
        assert response.status_code == 400

    def test_geocoding_result_passed_through(self, client):
        result = {"valid": True, "address": {"city": "Austin"}}
        with patch("app.domain.workspaces.service.validate_address", AsyncMock(return_value=result)):
            response = client.post("/api/validate-address", json={"address": "1 Main St"})
        assert response.json() == result

    def test_missing_key_is_500(self, client):
        with patch(
            "app.domain.workspaces.service.validate_address",
            AsyncMock(side_effect=GeocodingNotConfigured("missing")),
        ):
            response = client.post("/api/validate-address", json={"address": "1 Main St"})
        assert response.json()["detail"] == "Google Maps API key is not configured"

    def test_upstream_failure_is_500(self, client):
        with patch(
            "app.domain.workspaces.service.validate_address",
            AsyncMock(side_effect=httpx.ConnectError("down")),
        ):
            response = client.post("/api/validate-address", json={"address": "1 Main St"})
        assert response.json()["detail"] == "Failed to validate address"
