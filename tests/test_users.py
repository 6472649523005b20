"""
Unit tests for user management endpoints.
"""
import pytest

from conftest import API, get_auth_header, login

from intranet import models


def new_user_payload(**overrides):
    payload = {
        "username": "newuser",
        "password": "newpass123",
        "displayName": "New User",
        "email": "newuser@example.com",
        "role": "User",
    }
    payload.update(overrides)
    return payload


class TestUserCreation:
    """Tests for admin user creation."""

    def test_create_user_success(self, client, admin_token):
        """Test successful user creation."""
        response = client.post(
            f"{API}/users", json=new_user_payload(), headers=get_auth_header(admin_token)
        )
        assert response.status_code == 201
        data = response.json()
        assert data["username"] == "newuser"
        assert data["email"] == "newuser@example.com"
        assert data["role"] == "User"
        assert data["isActive"] is True
        assert data["themePreference"] == "Light"
        assert "hashedPassword" not in data

    def test_created_user_can_login(self, client, admin_token):
        client.post(f"{API}/users", json=new_user_payload(), headers=get_auth_header(admin_token))
        assert login(client, "newuser", "newpass123").status_code == 200

    def test_create_duplicate_username(self, client, admin_token, regular_user):
        """Test creation with duplicate username fails."""
        response = client.post(
            f"{API}/users",
            json=new_user_payload(username="regularuser"),
            headers=get_auth_header(admin_token),
        )
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_USER"

    def test_create_duplicate_email(self, client, admin_token, regular_user):
        """Test creation with duplicate email fails."""
        response = client.post(
            f"{API}/users",
            json=new_user_payload(email="regular@example.com"),
            headers=get_auth_header(admin_token),
        )
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_USER"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"username": "ab"},
            {"username": "bad name!"},
            {"password": "short"},
            {"email": "not-an-email"},
            {"displayName": "   "},
            {"role": "SuperUser"},
        ],
    )
    def test_create_user_field_rules(self, client, admin_token, overrides):
        response = client.post(
            f"{API}/users", json=new_user_payload(**overrides), headers=get_auth_header(admin_token)
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_regular_user_cannot_create(self, client, regular_token):
        response = client.post(
            f"{API}/users", json=new_user_payload(), headers=get_auth_header(regular_token)
        )
        assert response.status_code == 403


class TestUserListing:
    """Tests for listing and reading users."""

    def test_list_users_admin(self, client, admin_token, regular_user, other_user):
        response = client.get(f"{API}/users", headers=get_auth_header(admin_token))
        assert response.status_code == 200
        usernames = [u["username"] for u in response.json()["data"]]
        assert usernames == sorted(usernames)
        assert {"admin", "regularuser", "otheruser"} <= set(usernames)

    def test_list_hides_inactive_by_default(self, client, db_session, admin_token, other_user):
        other_user.is_active = False
        db_session.commit()

        response = client.get(f"{API}/users", headers=get_auth_header(admin_token))
        assert "otheruser" not in [u["username"] for u in response.json()["data"]]

        response = client.get(f"{API}/users?includeInactive=true", headers=get_auth_header(admin_token))
        assert "otheruser" in [u["username"] for u in response.json()["data"]]

    def test_list_users_regular_forbidden(self, client, regular_token):
        response = client.get(f"{API}/users", headers=get_auth_header(regular_token))
        assert response.status_code == 403

    def test_get_self(self, client, regular_user, regular_token):
        response = client.get(f"{API}/users/{regular_user.id}", headers=get_auth_header(regular_token))
        assert response.status_code == 200
        assert response.json()["displayName"] == "Regular User"

    def test_get_other_user_forbidden(self, client, other_user, regular_token):
        response = client.get(f"{API}/users/{other_user.id}", headers=get_auth_header(regular_token))
        assert response.status_code == 403

    def test_get_missing_user(self, client, admin_token):
        response = client.get(f"{API}/users/99999", headers=get_auth_header(admin_token))
        assert response.status_code == 404
        assert response.json()["error"]["message"] == "User not found"


class TestUserUpdate:
    """Tests for profile updates."""

    def test_update_own_profile(self, client, regular_user, regular_token):
        response = client.put(
            f"{API}/users/{regular_user.id}",
            json={"displayName": "Renamed", "email": "renamed@example.com"},
            headers=get_auth_header(regular_token),
        )
        assert response.status_code == 200
        assert response.json()["displayName"] == "Renamed"
        assert response.json()["email"] == "renamed@example.com"

    def test_regular_user_cannot_change_role(self, client, regular_user, regular_token):
        response = client.put(
            f"{API}/users/{regular_user.id}",
            json={"role": "Admin"},
            headers=get_auth_header(regular_token),
        )
        assert response.status_code == 403

    def test_admin_changes_role(self, client, regular_user, admin_token):
        response = client.put(
            f"{API}/users/{regular_user.id}",
            json={"role": "Admin"},
            headers=get_auth_header(admin_token),
        )
        assert response.status_code == 200
        assert response.json()["role"] == "Admin"

    def test_duplicate_email(self, client, regular_user, other_user, regular_token):
        response = client.put(
            f"{API}/users/{regular_user.id}",
            json={"email": "other@example.com"},
            headers=get_auth_header(regular_token),
        )
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_EMAIL"

    def test_update_other_user_forbidden(self, client, other_user, regular_token):
        response = client.put(
            f"{API}/users/{other_user.id}",
            json={"displayName": "Hacked"},
            headers=get_auth_header(regular_token),
        )
        assert response.status_code == 403

    def test_update_preferences(self, client, regular_token):
        response = client.put(
            f"{API}/users/me/preferences",
            json={"themePreference": "Dark", "sidebarCollapsed": True},
            headers=get_auth_header(regular_token),
        )
        assert response.status_code == 200
        data = response.json()
        assert data["themePreference"] == "Dark"
        assert data["sidebarCollapsed"] is True

    def test_partial_preferences_keep_other_field(self, client, regular_token):
        client.put(
            f"{API}/users/me/preferences",
            json={"sidebarCollapsed": True},
            headers=get_auth_header(regular_token),
        )
        response = client.put(
            f"{API}/users/me/preferences",
            json={"themePreference": "Dark"},
            headers=get_auth_header(regular_token),
        )
        assert response.json()["sidebarCollapsed"] is True


class TestUserDeactivation:
    """Tests for soft delete."""

    def test_deactivate_user(self, client, db_session, admin_token, regular_user):
        response = client.delete(f"{API}/users/{regular_user.id}", headers=get_auth_header(admin_token))
        assert response.status_code == 204

        db_session.refresh(regular_user)
        assert regular_user.is_active is False
        # the row is still there
        assert db_session.get(models.User, regular_user.id) is not None
        assert login(client, "regularuser", "regularpass123").status_code == 401

    def test_deactivate_revokes_refresh_tokens(self, client, db_session, admin_token, regular_user):
        login(client, "regularuser", "regularpass123")
        client.delete(f"{API}/users/{regular_user.id}", headers=get_auth_header(admin_token))

        live = (
            db_session.query(models.RefreshToken)
            .filter(
                models.RefreshToken.user_id == regular_user.id,
                models.RefreshToken.revoked_at.is_(None),
            )
            .count()
        )
        assert live == 0

    def test_admin_cannot_deactivate_self(self, client, admin_user, admin_token):
        response = client.delete(f"{API}/users/{admin_user.id}", headers=get_auth_header(admin_token))
        assert response.status_code == 422

    def test_admin_cannot_deactivate_self_through_update(self, client, db_session, admin_user, admin_token):
        response = client.put(
            f"{API}/users/{admin_user.id}",
            json={"isActive": False},
            headers=get_auth_header(admin_token),
        )
        assert response.status_code == 422

        db_session.refresh(admin_user)
        assert admin_user.is_active is True
        me = client.get(f"{API}/auth/me", headers=get_auth_header(admin_token))
        assert me.status_code == 200

    def test_regular_user_cannot_deactivate(self, client, other_user, regular_token):
        response = client.delete(f"{API}/users/{other_user.id}", headers=get_auth_header(regular_token))
        assert response.status_code == 403


class TestPasswordReset:
    """Tests for password reset."""

    def test_self_reset_requires_current_password(self, client, regular_user, regular_token):
        response = client.post(
            f"{API}/users/{regular_user.id}/reset-password",
            json={"newPassword": "brandnew123"},
            headers=get_auth_header(regular_token),
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "CURRENT_PASSWORD_REQUIRED"

    def test_self_reset_wrong_current_password(self, client, regular_user, regular_token):
        response = client.post(
            f"{API}/users/{regular_user.id}/reset-password",
            json={"newPassword": "brandnew123", "currentPassword": "nope12345"},
            headers=get_auth_header(regular_token),
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_CURRENT_PASSWORD"

    def test_self_reset_success(self, client, regular_user, regular_token):
        response = client.post(
            f"{API}/users/{regular_user.id}/reset-password",
            json={"newPassword": "brandnew123", "currentPassword": "regularpass123"},
            headers=get_auth_header(regular_token),
        )
        assert response.status_code == 200
        assert login(client, "regularuser", "brandnew123").status_code == 200

    def test_admin_reset_without_current_password(self, client, regular_user, admin_token):
        response = client.post(
            f"{API}/users/{regular_user.id}/reset-password",
            json={"newPassword": "adminset123"},
            headers=get_auth_header(admin_token),
        )
        assert response.status_code == 200
        assert login(client, "regularuser", "adminset123").status_code == 200

    def test_reset_other_user_forbidden(self, client, other_user, regular_token):
        response = client.post(
            f"{API}/users/{other_user.id}/reset-password",
            json={"newPassword": "brandnew123", "currentPassword": "otherpass123"},
            headers=get_auth_header(regular_token),
        )
        assert response.status_code == 403
