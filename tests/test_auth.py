"""Token verification, account provisioning and app-level behaviour"""

import time
from unittest.mock import MagicMock, patch

from conftest import auth_headers, create_member, make_token

from app import config, rate_limiter
from app.auth import names_from_claims
from app.models import TeamMember

STATUS_URL = "/api/auth/check-workspace-status"


class TestTokens:
    def test_missing_token(self, client):
        response = client.get(STATUS_URL)
        assert response.status_code == 401
        assert response.json()["detail"] == "Authentication required"

    def test_malformed_token(self, client):
        response = client.get(STATUS_URL, headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_expired_token_flagged(self, client):
        token = make_token("auth-1", "a@example.com", exp=int(time.time()) - 60)

        response = client.get(STATUS_URL, headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.headers["X-Token-Expired"] == "true"

    def test_wrong_audience(self, client):
        token = make_token("auth-1", "a@example.com", aud="anon")
        response = client.get(STATUS_URL, headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_cookie_fallback(self, client, owner, workspace):
        client.cookies.set("supabase-auth", make_token(owner.auth_user_id, owner.email))

        response = client.get(STATUS_URL)

        assert response.status_code == 200
        assert response.json()["hasWorkspace"] is True


class TestProvisioning:
    def test_first_sign_in_creates_member(self, client, db):
        token = make_token(
            "auth-new",
            "New.Person@Example.com",
            user_metadata={"full_name": "New Person", "is_professional": True},
            app_metadata={"provider": "google"},
        )

        response = client.get(STATUS_URL, headers={"Authorization": f"Bearer {token}"})

        assert response.json()["redirectUrl"] == "/onboarding/workspace-choice"
        member = db.query(TeamMember).filter_by(auth_user_id="auth-new").one()
        assert member.email == "new.person@example.com"
        assert member.first_name == "New"
        assert member.auth_provider == "google"
        assert member.is_professional is True

    def test_pre_created_member_is_linked(self, client, db):
        member = create_member(db, "invitee@example.com", "Ivy Invitee", linked=False)
        token = make_token("auth-ivy", "invitee@example.com")

        client.get(STATUS_URL, headers={"Authorization": f"Bearer {token}"})

        db.refresh(member)
        assert member.auth_user_id == "auth-ivy"
        assert db.query(TeamMember).count() == 1


def test_names_from_claims():
    assert names_from_claims({"user_metadata": {"name": "Ada Lovelace"}}) == ("Ada", "Lovelace", "Ada Lovelace")
    assert names_from_claims({"user_metadata": {"first_name": "Ada"}}) == ("Ada", None, "Ada")
    assert names_from_claims({}) == (None, None, None)


class TestApp:
    def test_health(self, client):
        response = client.get("/health")
        assert response.json() == {"status": "healthy"}
        assert "Content-Security-Policy" not in response.headers

    def test_security_headers(self, client, owner):
        response = client.get(STATUS_URL, headers=auth_headers(owner))

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["Cache-Control"].startswith("no-store")
        assert "default-src 'none'" in response.headers["Content-Security-Policy"]

    def test_validation_errors_are_json(self, client, owner, workspace):
        response = client.post(
            "/api/stripe/add-seats",
            json={"workspaceId": workspace.id, "seatsToAdd": "many"},
            headers=auth_headers(owner),
        )
        assert response.status_code == 422
        assert response.json()["detail"][0]["loc"][-1] == "seatsToAdd"


class TestRateLimiting:
    def test_public_endpoint_limited_per_ip(self, client):
        with patch.object(config, "RATE_LIMIT_ENABLED", True), \
                patch("app.rate_limiter.get_redis_client", return_value=None), \
                patch.dict(rate_limiter._local_windows, clear=True):
            statuses = [
                client.post("/api/check-user-exists", json={"email": "nobody@example.com"}).status_code
                for _ in range(11)
            ]

        assert statuses[:10] == [200] * 10
        assert statuses[10] == 429

    def test_redis_counter_used_when_available(self):
        redis_client = MagicMock()
        redis_client.pipeline.return_value.execute.return_value = [True, 3, 42]

        with patch("app.rate_limiter.get_redis_client", return_value=redis_client):
            assert rate_limiter.hit("rl:test:1.2.3.4", 60) == (3, 42)
