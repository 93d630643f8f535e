"""Tests for trip endpoints and membership role checks."""
import pytest
from httpx import AsyncClient

from travelplanner.auth.dependencies import has_trip_role
from travelplanner.db.models import Membership, MembershipRole

from tests.conftest import auth_headers, make_init_data

OWNER = auth_headers(make_init_data(42, "Olga"))
MEMBER = auth_headers(make_init_data(43, "Max"))
STRANGER = auth_headers(make_init_data(44, "Sam"))


async def _create_trip(client: AsyncClient, title: str = "Lisbon") -> dict:
    response = await client.post("/api/trips", json={"title": title}, headers=OWNER)
    assert response.status_code == 201, response.text
    return response.json()


async def _user_id(client: AsyncClient, headers: dict) -> int:
    response = await client.get("/api/users/me", headers=headers)
    return response.json()["id"]


async def _add_member(client: AsyncClient, db, trip_id: int, headers: dict, role: str) -> int:
    user_id = await _user_id(client, headers)
    db.add(Membership(trip_id=trip_id, user_id=user_id, role=role))
    db.commit()
    return user_id


class TestTripRoleHierarchy:
    """Tests for has_trip_role."""

    @pytest.mark.parametrize(
        "role,required,expected",
        [
            ("owner", MembershipRole.OWNER, True),
            ("owner", MembershipRole.VIEWER, True),
            ("editor", MembershipRole.EDITOR, True),
            ("editor", MembershipRole.OWNER, False),
            ("viewer", MembershipRole.VIEWER, True),
            ("viewer", MembershipRole.EDITOR, False),
            ("admin", MembershipRole.VIEWER, False),
        ],
    )
    def test_role_comparison(self, role, required, expected):
        assert has_trip_role(Membership(role=role), required) is expected

    def test_no_membership(self):
        assert has_trip_role(None, MembershipRole.VIEWER) is False


class TestTrips:
    """Tests for trip creation and access."""

    async def test_requires_authentication(self, client: AsyncClient):
        response = await client.get("/api/trips")
        assert response.status_code == 401

    async def test_create_trip_makes_caller_owner(self, client: AsyncClient):
        trip = await _create_trip(client)
        assert trip["title"] == "Lisbon"
        assert trip["role"] == "owner"
        assert trip["owner_name"] == "Olga"
        assert len(trip["members"]) == 1
        assert trip["members"][0]["role"] == "owner"

    async def test_create_trip_validates_title(self, client: AsyncClient):
        response = await client.post("/api/trips", json={"title": ""}, headers=OWNER)
        assert response.status_code == 422

    async def test_list_only_member_trips(self, client: AsyncClient):
        await _create_trip(client, "Lisbon")
        await _create_trip(client, "Porto")

        owner_list = await client.get("/api/trips", headers=OWNER)
        assert {t["title"] for t in owner_list.json()} == {"Lisbon", "Porto"}

        stranger_list = await client.get("/api/trips", headers=STRANGER)
        assert stranger_list.status_code == 200
        assert stranger_list.json() == []

    async def test_get_trip_as_owner(self, client: AsyncClient):
        trip = await _create_trip(client)
        response = await client.get(f"/api/trips/{trip['id']}", headers=OWNER)
        assert response.status_code == 200
        assert response.json()["id"] == trip["id"]

    async def test_get_unknown_trip_returns_404(self, client: AsyncClient):
        response = await client.get("/api/trips/9999", headers=OWNER)
        assert response.status_code == 404

    async def test_non_member_gets_403(self, client: AsyncClient):
        trip = await _create_trip(client)
        response = await client.get(f"/api/trips/{trip['id']}", headers=STRANGER)
        assert response.status_code == 403
        assert "Insufficient permissions" in response.json()["detail"]

    async def test_member_sees_trip_with_own_role(self, client: AsyncClient, db):
        trip = await _create_trip(client)
        await _add_member(client, db, trip["id"], MEMBER, "viewer")

        response = await client.get(f"/api/trips/{trip['id']}", headers=MEMBER)
        assert response.status_code == 200
        assert response.json()["role"] == "viewer"
        assert len(response.json()["members"]) == 2


class TestMemberRoles:
    """Tests for PUT /api/trips/{trip_id}/members/role."""

    async def test_owner_changes_member_role(self, client: AsyncClient, db):
        trip = await _create_trip(client)
        member_id = await _add_member(client, db, trip["id"], MEMBER, "viewer")

        response = await client.put(
            f"/api/trips/{trip['id']}/members/role",
            json={"userId": member_id, "role": "editor"},
            headers=OWNER,
        )
        assert response.status_code == 204

        member_view = await client.get(f"/api/trips/{trip['id']}", headers=MEMBER)
        assert member_view.json()["role"] == "editor"

    async def test_non_owner_cannot_change_roles(self, client: AsyncClient, db):
        trip = await _create_trip(client)
        member_id = await _add_member(client, db, trip["id"], MEMBER, "editor")

        response = await client.put(
            f"/api/trips/{trip['id']}/members/role",
            json={"userId": member_id, "role": "viewer"},
            headers=MEMBER,
        )
        assert response.status_code == 403

    async def test_owner_role_cannot_change(self, client: AsyncClient):
        trip = await _create_trip(client)
        response = await client.put(
            f"/api/trips/{trip['id']}/members/role",
            json={"userId": trip["owner_id"], "role": "viewer"},
            headers=OWNER,
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot change owner role"

    async def test_ownership_cannot_be_assigned(self, client: AsyncClient, db):
        trip = await _create_trip(client)
        member_id = await _add_member(client, db, trip["id"], MEMBER, "editor")
        response = await client.put(
            f"/api/trips/{trip['id']}/members/role",
            json={"userId": member_id, "role": "owner"},
            headers=OWNER,
        )
        assert response.status_code == 400

    async def test_non_member_target_returns_404(self, client: AsyncClient):
        trip = await _create_trip(client)
        stranger_id = await _user_id(client, STRANGER)
        response = await client.put(
            f"/api/trips/{trip['id']}/members/role",
            json={"userId": stranger_id, "role": "editor"},
            headers=OWNER,
        )
        assert response.status_code == 404

    async def test_role_change_is_audited(self, client: AsyncClient, db):
        from travelplanner.audit import get_audit_logger

        trip = await _create_trip(client)
        member_id = await _add_member(client, db, trip["id"], MEMBER, "viewer")
        await client.put(
            f"/api/trips/{trip['id']}/members/role",
            json={"userId": member_id, "role": "editor"},
            headers=OWNER,
        )

        events = get_audit_logger().get_recent_events(action_filter="trip.member_role_update")
        assert len(events) == 1
        assert events[0]["resource"] == f"trip:{trip['id']}"
        assert events[0]["details"] == {"user_id": member_id, "from": "viewer", "to": "editor"}
