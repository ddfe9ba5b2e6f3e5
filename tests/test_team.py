"""Team management: invitations, members and seat limits, availability, assignments, profile"""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from conftest import add_membership, auth_headers, create_member, create_subscription

from app.domain.team.service import split_name
from app.models import TeamMemberAvailability, TeamMemberService, WorkspaceInvitation, WorkspaceMember


@pytest.fixture
def invitation_email():
    with patch("app.email_service.send_team_invitation_email", AsyncMock()) as mock:
        yield mock


def test_split_name():
    assert split_name("Ada Lovelace") == ("Ada", "Lovelace")
    assert split_name("Cher") == ("Cher", None)
    assert split_name("  Mary Ann Evans ") == ("Mary", "Ann Evans")


class TestTeamList:
    def test_owner_sees_everyone(self, client, owner, workspace):
        response = client.get("/api/team", params={"workspaceId": workspace.id}, headers=auth_headers(owner))

        body = response.json()
        assert body["isStaff"] is False
        assert {m["email"] for m in body["teamMembers"]} == {"owner@example.com", "staff@example.com"}

    def test_staff_sees_only_themselves(self, client, staff, workspace):
        response = client.get("/api/team", params={"workspaceId": workspace.id}, headers=auth_headers(staff))

        body = response.json()
        assert body["isStaff"] is True
        assert [m["email"] for m in body["teamMembers"]] == ["staff@example.com"]


class TestInvitations:
    def test_invite_creates_pending_invitation(self, client, db, owner, workspace, invitation_email):
        response = client.post(
            "/api/team/invite",
            json={"email": "New@Example.com", "role": "staff", "workspaceId": workspace.id},
            headers=auth_headers(owner),
        )

        assert response.status_code == 200
        invitation = db.query(WorkspaceInvitation).one()
        assert invitation.email == "new@example.com"
        assert invitation.status == "pending"
        assert invitation.expires_at > datetime.utcnow() + timedelta(days=6)
        kwargs = invitation_email.await_args.kwargs
        assert kwargs["invitation_link"].endswith(f"token={invitation.token}")

    def test_reinvite_refreshes_existing(self, client, db, owner, workspace, invitation_email):
        body = {"email": "new@example.com", "role": "staff", "workspaceId": workspace.id}
        client.post("/api/team/invite", json=body, headers=auth_headers(owner))
        client.post("/api/team/invite", json={**body, "role": "owner"}, headers=auth_headers(owner))

        invitations = db.query(WorkspaceInvitation).all()
        assert len(invitations) == 1
        assert invitations[0].role == "owner"

    def test_invalid_role(self, client, owner, workspace):
        response = client.post(
            "/api/team/invite",
            json={"email": "new@example.com", "role": "admin", "workspaceId": workspace.id},
            headers=auth_headers(owner),
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Valid role is required (owner or staff)"

    def test_cannot_invite_self(self, client, owner, workspace):
        response = client.post(
            "/api/team/invite",
            json={"email": owner.email, "role": "staff", "workspaceId": workspace.id},
            headers=auth_headers(owner),
        )
        assert response.json()["detail"] == "You cannot invite yourself to this workspace"

    def test_staff_cannot_invite(self, client, staff, workspace):
        response = client.post(
            "/api/team/invite",
            json={"email": "new@example.com", "role": "staff", "workspaceId": workspace.id},
            headers=auth_headers(staff),
        )
        assert response.status_code == 403

    def test_existing_member_rejected(self, client, owner, workspace):
        response = client.post(
            "/api/team/invite",
            json={"email": "staff@example.com", "role": "staff", "workspaceId": workspace.id},
            headers=auth_headers(owner),
        )
        assert response.json()["detail"] == "This email is already a member of this workspace"

    def test_accept_adds_membership(self, client, db, workspace):
        invitee = create_member(db, "invitee@example.com", "Ivy Invitee")
        db.add(
            WorkspaceInvitation(
                workspace_id=workspace.id,
                email="invitee@example.com",
                role="staff",
                token="tok-1",
                expires_at=datetime.utcnow() + timedelta(days=1),
            )
        )
        db.commit()

        response = client.post(
            "/api/team/accept-invitation", json={"token": "tok-1"}, headers=auth_headers(invitee)
        )

        assert response.status_code == 200
        assert response.json()["workspaceId"] == workspace.id
        db.expire_all()
        assert db.query(WorkspaceMember).filter_by(team_member_id=invitee.id).one().role == "staff"
        assert db.query(WorkspaceInvitation).one().status == "accepted"

    def test_accept_wrong_email(self, client, db, outsider, workspace):
        db.add(
            WorkspaceInvitation(
                workspace_id=workspace.id,
                email="someone@example.com",
                token="tok-2",
                expires_at=datetime.utcnow() + timedelta(days=1),
            )
        )
        db.commit()

        response = client.post(
            "/api/team/accept-invitation", json={"token": "tok-2"}, headers=auth_headers(outsider)
        )
        assert response.status_code == 403

    def test_accept_expired(self, client, db, outsider, workspace):
        db.add(
            WorkspaceInvitation(
                workspace_id=workspace.id,
                email=outsider.email,
                token="tok-3",
                expires_at=datetime.utcnow() - timedelta(minutes=1),
            )
        )
        db.commit()

        response = client.post(
            "/api/team/accept-invitation", json={"token": "tok-3"}, headers=auth_headers(outsider)
        )

        assert response.json()["detail"] == "Invitation has expired"
        db.expire_all()
        assert db.query(WorkspaceInvitation).one().status == "expired"

    def test_cancel_pending(self, client, db, owner, workspace):
        invitation = WorkspaceInvitation(
            workspace_id=workspace.id,
            email="x@example.com",
            token="tok-4",
            expires_at=datetime.utcnow() + timedelta(days=1),
        )
        db.add(invitation)
        db.commit()

        response = client.post(
            "/api/team/cancel-invitation",
            json={"invitationId": invitation.id, "workspaceId": workspace.id},
            headers=auth_headers(owner),
        )

        assert response.status_code == 200
        again = client.post(
            "/api/team/cancel-invitation",
            json={"invitationId": invitation.id, "workspaceId": workspace.id},
            headers=auth_headers(owner),
        )
        assert again.json()["detail"] == "Invitation is not in pending status"


class TestMembers:
    def test_seat_limit_without_subscription(self, client, owner, workspace):
        response = client.post(
            "/api/team/member",
            json={"workspaceId": workspace.id, "name": "Nina New", "email": "nina@example.com"},
            headers=auth_headers(owner),
        )

        assert response.status_code == 403
        detail = response.json()["detail"]
        assert detail["seatLimitReached"] is True
        assert detail["totalSeats"] == 1

    def test_add_member_within_plan_seats(self, client, db, owner, workspace, plan):
        create_subscription(db, workspace, plan)

        response = client.post(
            "/api/team/member",
            json={"workspaceId": workspace.id, "name": "Nina New", "email": "nina@example.com"},
            headers=auth_headers(owner),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Team member added successfully"
        assert body["teamMember"]["first_name"] == "Nina"
        assert body["teamMember"]["role"] == "staff"

    def test_trial_seat_message(self, client, db, owner, workspace, plan):
        plan.included_seats = 2
        db.commit()
        create_subscription(db, workspace, plan, status="trialing")

        response = client.post(
            "/api/team/member",
            json={"workspaceId": workspace.id, "email": "nina@example.com"},
            headers=auth_headers(owner),
        )

        detail = response.json()["detail"]
        assert detail["isTrialing"] is True
        assert detail["error"] == "Seat limit reached. Your trial plan has a limit of 2 seats."

    def test_update_existing_member_skips_seat_check(self, client, owner, staff, workspace):
        response = client.post(
            "/api/team/member",
            json={"workspaceId": workspace.id, "teamMemberId": staff.id, "role": "owner"},
            headers=auth_headers(owner),
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Team member updated successfully"

    def test_remove_member(self, client, db, owner, staff, workspace):
        response = client.delete(
            "/api/team/member",
            params={"workspaceId": workspace.id, "teamMemberId": staff.id},
            headers=auth_headers(owner),
        )

        assert response.status_code == 200
        db.expire_all()
        assert db.query(WorkspaceMember).filter_by(team_member_id=staff.id).count() == 0

    def test_cannot_remove_self(self, client, owner, workspace):
        response = client.delete(
            "/api/team/member",
            params={"workspaceId": workspace.id, "teamMemberId": owner.id},
            headers=auth_headers(owner),
        )
        assert response.json()["detail"] == "You cannot remove yourself from the workspace"


class TestAvailability:
    def test_staff_manages_own_availability(self, client, db, staff, workspace):
        response = client.post(
            "/api/team/member/availability",
            json={"teamMemberId": staff.id, "dayOfWeek": 1, "startTime": "09:00", "endTime": "17:00"},
            headers=auth_headers(staff),
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Availability added successfully"
        assert db.query(TeamMemberAvailability).count() == 1

    def test_staff_cannot_edit_others(self, client, owner, staff, workspace):
        response = client.post(
            "/api/team/member/availability",
            json={"teamMemberId": owner.id, "dayOfWeek": 1, "startTime": "09:00", "endTime": "17:00"},
            headers=auth_headers(staff),
        )
        assert response.status_code == 403
        assert response.json()["detail"] == "Staff members can only manage their own availability"

    def test_owner_edits_staff(self, client, owner, staff, workspace):
        response = client.post(
            "/api/team/member/availability",
            json={"teamMemberId": staff.id, "dayOfWeek": 0, "startTime": "10:00", "endTime": "12:00"},
            headers=auth_headers(owner),
        )
        assert response.status_code == 200

    def test_start_before_end(self, client, staff, workspace):
        response = client.post(
            "/api/team/member/availability",
            json={"teamMemberId": staff.id, "dayOfWeek": 1, "startTime": "17:00", "endTime": "09:00"},
            headers=auth_headers(staff),
        )
        assert response.json()["detail"] == "Start time must be before end time"

    def test_day_out_of_range(self, client, staff, workspace):
        response = client.post(
            "/api/team/member/availability",
            json={"teamMemberId": staff.id, "dayOfWeek": 7, "startTime": "09:00", "endTime": "10:00"},
            headers=auth_headers(staff),
        )
        assert response.status_code == 422

    def test_outsider_cannot_list(self, client, outsider, staff, workspace):
        response = client.get(
            "/api/team/member/availability", params={"teamMemberId": staff.id}, headers=auth_headers(outsider)
        )
        assert response.status_code == 403


class TestServiceAssignments:
    def test_staff_self_assigns_and_removes(self, client, db, staff, workspace, service):
        assigned = client.post(
            "/api/team/member/services",
            json={"teamMemberId": staff.id, "serviceId": service.id, "workspaceId": workspace.id},
            headers=auth_headers(staff),
        )
        assert assigned.status_code == 200
        assignment = assigned.json()["assignment"]
        assert assignment["self_assigned"] is True

        listed = client.get(
            "/api/team/member/services",
            params={"teamMemberId": staff.id, "workspaceId": workspace.id},
            headers=auth_headers(staff),
        )
        assert listed.json()["assignments"][0]["service"]["name"] == "Haircut"

        removed = client.delete(
            "/api/team/member/services",
            params={"assignmentId": assignment["id"], "teamMemberId": staff.id, "workspaceId": workspace.id},
            headers=auth_headers(staff),
        )
        assert removed.status_code == 200
        db.expire_all()
        assert db.query(TeamMemberService).one().active is False

    def test_staff_cannot_remove_owner_assignment(self, client, owner, staff, workspace, service):
        assigned = client.post(
            "/api/team/member/services",
            json={"teamMemberId": staff.id, "serviceId": service.id, "workspaceId": workspace.id},
            headers=auth_headers(owner),
        )
        assignment_id = assigned.json()["assignment"]["id"]

        response = client.delete(
            "/api/team/member/services",
            params={"assignmentId": assignment_id, "teamMemberId": staff.id, "workspaceId": workspace.id},
            headers=auth_headers(staff),
        )
        assert response.status_code == 403

    def test_duplicate_assignment_is_idempotent(self, client, owner, staff, workspace, service):
        body = {"teamMemberId": staff.id, "serviceId": service.id, "workspaceId": workspace.id}
        client.post("/api/team/member/services", json=body, headers=auth_headers(owner))

        response = client.post("/api/team/member/services", json=body, headers=auth_headers(owner))
        assert response.json()["message"] == "Service is already assigned to this team member"

    def test_staff_cannot_view_others(self, client, owner, staff, workspace):
        response = client.get(
            "/api/team/member/services",
            params={"teamMemberId": owner.id, "workspaceId": workspace.id},
            headers=auth_headers(staff),
        )
        assert response.status_code == 403


class TestProfile:
    def test_update_own_profile(self, client, staff):
        response = client.post(
            "/api/team-member/profile",
            json={"firstName": "Samuel", "phone": "(555) 555-0199"},
            headers=auth_headers(staff),
        )

        assert response.status_code == 200
        member = response.json()["teamMember"]
        assert member["first_name"] == "Samuel"
        assert member["phone"] == "+15555550199"

    def test_cannot_update_others(self, client, owner, staff):
        response = client.post(
            "/api/team-member/profile",
            json={"teamMemberId": owner.id, "firstName": "X"},
            headers=auth_headers(staff),
        )
        assert response.status_code == 403

    def test_first_sign_in_creates_member(self, client, db):
        from conftest import make_token

        token = make_token("auth-new", "Fresh@Example.com", user_metadata={"full_name": "Fran Fresh"})
        response = client.get("/api/team-member/profile", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        member = response.json()["teamMember"]
        assert member["email"] == "fresh@example.com"
        assert member["first_name"] == "Fran"

    def test_populate_requires_professional(self, client, staff):
        response = client.post("/api/team-member/populate", headers=auth_headers(staff))
        assert response.json() == {"success": False, "message": "User is not a professional"}

    def test_populate_fills_blank_fields(self, client, db):
        from conftest import make_token

        member = create_member(db, "pro@example.com")
        member.is_professional = True
        db.commit()

        token = make_token(
            member.auth_user_id,
            member.email,
            user_metadata={"first_name": "Pat", "last_name": "Pro", "phone": "+15555550123"},
        )
        response = client.post("/api/team-member/populate", headers={"Authorization": f"Bearer {token}"})

        body = response.json()["teamMember"]
        assert body["first_name"] == "Pat"
        assert body["display_name"] == "Pat Pro"
        assert body["phone"] == "+15555550123"


def test_inactive_membership_is_forbidden(client, db, workspace):
    member = create_member(db, "inactive@example.com")
    add_membership(db, workspace, member, active=False)

    response = client.get("/api/team", params={"workspaceId": workspace.id}, headers=auth_headers(member))
    assert response.status_code == 403
    assert response.json()["detail"] == "Your account is inactive for this workspace"
