"""HTTP tests for the users resource."""
import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient

from app.main import create_application
from app.users.service import USER_CREATED, USER_DELETED, USER_UPDATED


def make_user(user_id: int, first_name: str = "Luis") -> dict:
    return {
        "id": user_id,
        "first_name": first_name,
        "last_name": "Garcia",
        "email": f"user{user_id}@empresa.com",
    }


class TestUserLifecycle:
    """Create, read, update and delete through the HTTP surface."""

    def test_example_flow(self, client: TestClient, ana: dict):
        response = client.post("/users", json=ana)
        assert response.status_code == 200
        assert response.json() == "Usuario creado con éxito"

        assert client.get("/users/1").json() == ana

        response = client.put("/users/1", json={**ana, "first_name": "Ana2"})
        assert response.status_code == 200
        assert response.json() == "Usuario actualizado con éxito"
        assert client.get("/users/1").json()["first_name"] == "Ana2"

        response = client.delete("/users/1")
        assert response.status_code == 200
        assert response.json() == "Usuario eliminado con éxito"

        response = client.get("/users/1")
        assert response.status_code == 200
        assert response.json() is None

    def test_create_then_get_returns_equal_record(self, client: TestClient):
        user = make_user(42, first_name="Marta")

        assert client.post("/users", json=user).json() == USER_CREATED
        assert client.get("/users/42").json() == user

    def test_list_returns_every_created_record(self, client: TestClient):
        users = [make_user(i) for i in (3, 1, 7, 5)]
        for user in users:
            client.post("/users", json=user)

        listed = client.get("/users").json()

        assert len(listed) == len(users)
        assert sorted(listed, key=lambda u: u["id"]) == sorted(users, key=lambda u: u["id"])

    def test_list_empty_table(self, client: TestClient):
        response = client.get("/users")

        assert response.status_code == 200
        assert response.json() == []

    def test_get_missing_returns_null(self, client: TestClient):
        response = client.get("/users/999")

        assert response.status_code == 200
        assert response.json() is None

    def test_update_missing_id_is_a_noop(self, client: TestClient):
        response = client.put("/users/5", json=make_user(5))

        assert response.status_code == 200
        assert response.json() == USER_UPDATED
        assert client.get("/users/5").json() is None
        assert client.get("/users").json() == []

    def test_delete_missing_id_is_a_noop(self, client: TestClient, ana: dict):
        client.post("/users", json=ana)

        response = client.delete("/users/2")

        assert response.status_code == 200
        assert response.json() == USER_DELETED
        assert client.get("/users").json() == [ana]

    def test_update_uses_path_id_over_body_id(self, client: TestClient):
        client.post("/users", json=make_user(1))
        client.post("/users", json=make_user(2))

        body = {**make_user(2), "first_name": "Cambiado"}
        assert client.put("/users/1", json=body).json() == USER_UPDATED

        assert client.get("/users/1").json()["first_name"] == "Cambiado"
        assert client.get("/users/2").json()["first_name"] == "Luis"

    def test_update_overwrites_all_non_id_fields(self, client: TestClient, ana: dict):
        client.post("/users", json=ana)
        replacement = {"id": 1, "first_name": "Eva", "last_name": "Ruiz", "email": "eva@x.com"}

        client.put("/users/1", json=replacement)

        assert client.get("/users/1").json() == replacement

    def test_spanish_alias_path(self, client: TestClient, ana: dict):
        assert client.post("/usuarios", json=ana).json() == USER_CREATED
        assert client.get("/users/1").json() == ana
        assert client.get("/usuarios").json() == [ana]

    def test_record_is_stored_exactly_as_sent(self, client: TestClient):
        user = {
            "id": 7,
            "first_name": " Ana ",
            "last_name": "de la  Cruz ",
            "email": "Ana@Example.COM",
        }

        assert client.post("/users", json=user).json() == USER_CREATED
        assert client.get("/users/7").json() == user

        replacement = {**user, "first_name": "  Eva", "email": "EVA@X.Com"}
        assert client.put("/users/7", json=replacement).json() == USER_UPDATED
        assert client.get("/users/7").json() == replacement

    @pytest.mark.parametrize("user_id", [2**31 - 1, -(2**31), 0])
    def test_boundary_ids_round_trip(self, client: TestClient, user_id: int):
        user = make_user(user_id)

        assert client.post("/users", json=user).json() == USER_CREATED
        assert client.get(f"/users/{user_id}").json() == user
        assert client.delete(f"/users/{user_id}").json() == USER_DELETED


class TestUserErrors:
    """Failures are mapped to distinct HTTP statuses."""

    def test_duplicate_id_is_a_conflict(self, client: TestClient, ana: dict):
        client.post("/users", json=ana)

        response = client.post("/users", json={**ana, "email": "otra@x.com"})

        assert response.status_code == 409
        assert response.json()["detail"].startswith("Error al insertar usuario:")

    @pytest.mark.parametrize(
        "field, value",
        [
            ("email", "no-es-un-email"),
            ("first_name", ""),
            ("last_name", "   "),
        ],
    )
    def test_invalid_record_is_rejected(self, client: TestClient, ana: dict, field, value):
        response = client.post("/users", json={**ana, field: value})

        assert response.status_code == 422
        assert client.get("/users").json() == []

    def test_incomplete_record_is_rejected(self, client: TestClient, ana: dict):
        del ana["email"]

        assert client.post("/users", json=ana).status_code == 422
        assert client.put("/users/1", json=ana).status_code == 422

    @pytest.mark.parametrize("user_id", [2**31, -(2**31) - 1, 99999999999999999999999])
    def test_out_of_range_id_is_rejected(self, client: TestClient, user_id: int):
        body = make_user(user_id)

        assert client.post("/users", json=body).status_code == 422
        assert client.get(f"/users/{user_id}").status_code == 422
        assert client.put(f"/users/{user_id}", json=make_user(1)).status_code == 422
        assert client.delete(f"/users/{user_id}").status_code == 422
        assert client.get("/users").json() == []

    def test_non_integer_path_id_is_rejected(self, client: TestClient):
        assert client.get("/users/abc").status_code == 422
        assert client.delete("/users/abc").status_code == 422

    def test_unknown_method_is_not_allowed(self, client: TestClient):
        assert client.patch("/users/1", json={}).status_code == 405

    def test_missing_table_surfaces_as_unavailable(self, settings_factory):
        settings = settings_factory(create_schema=False)

        with TestClient(create_application(settings)) as client:
            listed = client.get("/users")
            fetched = client.get("/users/1")

        assert listed.status_code == 503
        assert listed.json()["detail"].startswith("Error al obtener usuario:")
        assert fetched.status_code == 503

    def test_report_missing_rows(self, settings_factory, ana: dict):
        settings = settings_factory(report_missing_rows=True)

        with TestClient(create_application(settings)) as client:
            updated = client.put("/users/9", json=ana)
            deleted = client.delete("/users/9")
            client.post("/users", json=ana)
            existing = client.delete("/users/1")

        assert updated.status_code == 404
        assert updated.json()["detail"] == "Usuario no encontrado: 9"
        assert deleted.status_code == 404
        assert existing.json() == USER_DELETED

    def test_unreachable_database_answers_503(self, settings_factory, tmp_path, ana: dict):
        missing_dir = tmp_path / "missing" / "users.db"
        settings = settings_factory(database_url=f"sqlite+aiosqlite:///{missing_dir}")

        with TestClient(create_application(settings)) as client:
            response = client.post("/users", json=ana)
            health = client.get("/health").json()

        assert response.status_code == 503
        assert health["database"] == "unavailable"


class TestHealth:

    def test_root(self, client: TestClient):
        assert client.get("/").json()["status"] == "healthy"

    def test_health_reports_connected(self, client: TestClient):
        assert client.get("/health").json() == {"status": "healthy", "database": "connected"}


@pytest.mark.asyncio
async def test_concurrent_creates_are_all_retrievable(settings):
    """Requests running concurrently share the guarded connection safely."""
    app = create_application(settings)
    users = [make_user(i) for i in range(1, 26)]

    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            responses = await asyncio.gather(
                *(client.post("/users", json=user) for user in users)
            )
            assert [r.json() for r in responses] == [USER_CREATED] * len(users)

            fetched = await asyncio.gather(
                *(client.get(f"/users/{user['id']}") for user in users)
            )
            listed = (await client.get("/users")).json()

    assert [r.json() for r in fetched] == users
    assert len(listed) == len(users)
