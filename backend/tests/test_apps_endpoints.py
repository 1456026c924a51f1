from conftest import make_app


def test_create_and_fetch_app(client, user, auth_headers):
    response = client.post("/api/v1/apps", json={"name": "Storefront"}, headers=auth_headers)
    assert response.status_code == 201
    created = response.json()["data"]["app"]
    assert created["name"] == "Storefront"
    assert created["owner_id"] == user.id
    assert created["archived"] is False

    fetched = client.get(f"/api/v1/apps/{created['id']}", headers=auth_headers).json()["data"]["app"]
    assert fetched == created


def test_list_only_returns_callers_apps(client, session, user, other_user, auth_headers):
    mine = make_app(session, user, name="Mine")
    make_app(session, other_user, name="Theirs")

    payload = client.get("/api/v1/apps", headers=auth_headers).json()["data"]
    assert payload["count"] == 1
    assert [a["id"] for a in payload["apps"]] == [mine.id]


def test_archived_apps_listed_unless_excluded(client, session, user, auth_headers):
    active = make_app(session, user, name="Active")
    archived = make_app(session, user, name="Old")

    response = client.patch(f"/api/v1/apps/{archived.id}", json={"archived": True}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["data"]["app"]["archived"] is True

    everything = client.get("/api/v1/apps", headers=auth_headers).json()["data"]["apps"]
    assert {a["id"] for a in everything} == {active.id, archived.id}

    visible = client.get("/api/v1/apps", params={"include_archived": False}, headers=auth_headers).json()["data"]
    assert [a["id"] for a in visible["apps"]] == [active.id]


def test_patch_is_partial(client, session, user, auth_headers):
    app = make_app(session, user, name="Shop")

    updated = client.patch(
        f"/api/v1/apps/{app.id}",
        json={"name": "Shop v2", "archived": None},
        headers=auth_headers,
    ).json()["data"]["app"]
    assert updated["name"] == "Shop v2"
    assert updated["description"] == "Shop app"
    assert updated["archived"] is False


def test_foreign_app_is_not_found(client, session, other_user, auth_headers):
    theirs = make_app(session, other_user, name="Theirs")

    assert client.get(f"/api/v1/apps/{theirs.id}", headers=auth_headers).status_code == 404
    response = client.patch(f"/api/v1/apps/{theirs.id}", json={"archived": True}, headers=auth_headers)
    assert response.status_code == 404
    assert response.json()["message"] == "App not found or access denied"


def test_health_and_request_timing(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": "0.3.0"}
    assert "X-Request-Duration-ms" in response.headers


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/v1/nothing-here")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Not Found"}
