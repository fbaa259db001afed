import asyncio
import json

from fastapi.testclient import TestClient

from app.back.main import create_app


def _create(client, headers, title="Chair", visible="true", textures=(), **form):
    files = [("model", ("chair.glb", b"glb-v1", "model/gltf-binary"))]
    files += [("textures", (name, b"png", "image/png")) for name in textures]
    data = {"title": title, "visible": visible, **form}
    return client.post("/api/admin/models", files=files, data=data, headers=headers)


# ---------------------------------------------------------------------------
# 인증
# ---------------------------------------------------------------------------
def test_login_returns_token_and_admin_flag(client):
    resp = client.post("/api/auth/login", json={"username": "admin", "password": "admin123"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["isAdmin"] is True
    assert body["user"]["username"] == "admin"
    assert body["token"]


def test_login_with_wrong_password_is_401(client):
    resp = client.post("/api/auth/login", json={"username": "admin", "password": "nope"})

    assert resp.status_code == 401


def test_admin_routes_require_token(client):
    assert client.get("/api/admin/models").status_code == 401
    assert client.get(
        "/api/admin/models", headers={"Authorization": "Bearer not-a-token"}
    ).status_code == 401


def test_admin_routes_reject_non_admin(client):
    asyncio.run(client.app.state.users.create_user("viewer", "secret"))
    login = client.post("/api/auth/login", json={"username": "viewer", "password": "secret"})
    headers = {"Authorization": f"Bearer {login.json()['token']}"}

    assert login.json()["isAdmin"] is False
    assert client.get("/api/admin/models", headers=headers).status_code == 403


# ---------------------------------------------------------------------------
# 등록 / 조회
# ---------------------------------------------------------------------------
def test_create_requires_title_and_model_file(client, admin_headers):
    no_title = client.post(
        "/api/admin/models",
        files=[("model", ("chair.glb", b"glb", "model/gltf-binary"))],
        data={"title": ""},
        headers=admin_headers,
    )
    no_file = client.post("/api/admin/models", data={"title": "Chair"}, headers=admin_headers)

    assert no_title.status_code == 400
    assert no_file.status_code == 400
    assert client.get("/api/admin/models", headers=admin_headers).json() == []


def test_create_model_with_configurator_and_textures(client, admin_headers):
    resp = _create(
        client,
        admin_headers,
        textures=("wood.png", "metal.png"),
        category="Furniture",
        parts=json.dumps(["seat", "leg"]),
        colors=json.dumps(["#fff"]),
    )

    assert resp.status_code == 200
    model = resp.json()
    assert model["title"] == "Chair"
    assert model["category"] == "Furniture"
    assert model["visible"] is True
    assert model["glbPath"].startswith(f"/uploads/admin-models/{model['id']}/")

    configurator = client.get(f"/api/admin/models/{model['id']}/configurator", headers=admin_headers).json()
    assert configurator["modelId"] == model["id"]
    assert configurator["parts"] == ["seat", "leg"]
    assert configurator["colors"] == ["#fff"]

    textures = client.get(f"/api/admin/models/{model['id']}/textures", headers=admin_headers).json()
    assert sorted(t["name"] for t in textures) == ["metal.png", "wood.png"]


def test_create_with_bad_json_field_is_400(client, admin_headers):
    resp = _create(client, admin_headers, parts="not json")

    assert resp.status_code == 400


def test_configurator_defaults_to_empty_structure(client, admin_headers):
    resp = client.get("/api/admin/models/unknown/configurator", headers=admin_headers)

    assert resp.status_code == 200
    assert resp.json() == {"modelId": "unknown", "parts": [], "textures": {}, "materials": {}, "colors": []}


def test_hidden_models_look_absent_publicly(client, admin_headers):
    shown = _create(client, admin_headers, title="Shown").json()
    hidden = _create(client, admin_headers, title="Hidden", visible="false").json()

    public_ids = [m["id"] for m in client.get("/api/models/public").json()]
    assert public_ids == [shown["id"]]

    assert client.get(f"/api/models/{shown['id']}").status_code == 200
    assert client.get(f"/api/models/{hidden['id']}").status_code == 404
    assert client.get("/api/models/does-not-exist").status_code == 404

    admin_ids = {m["id"] for m in client.get("/api/admin/models", headers=admin_headers).json()}
    assert admin_ids == {shown["id"], hidden["id"]}


# ---------------------------------------------------------------------------
# 수정 / 삭제
# ---------------------------------------------------------------------------
def test_patch_toggles_visibility_only(client, admin_headers):
    model = _create(client, admin_headers, description="Oak").json()

    resp = client.patch(f"/api/admin/models/{model['id']}", json={"visible": False}, headers=admin_headers)

    assert resp.status_code == 200
    patched = resp.json()
    assert patched["visible"] is False
    for key in ("title", "description", "category", "glbPath", "createdAt"):
        assert patched[key] == model[key]
    assert client.get(f"/api/models/{model['id']}").status_code == 404


def test_patch_unknown_model_is_404(client, admin_headers):
    resp = client.patch("/api/admin/models/nope", json={"visible": True}, headers=admin_headers)

    assert resp.status_code == 404


def test_put_without_file_keeps_asset_and_appends_textures(client, admin_headers):
    model = _create(client, admin_headers, textures=("wood.png",)).json()

    resp = client.put(
        f"/api/admin/models/{model['id']}",
        data={"title": "Armchair", "description": "Soft"},
        files=[("textures", ("metal.png", b"png", "image/png"))],
        headers=admin_headers,
    )

    assert resp.status_code == 200
    updated = resp.json()
    assert updated["title"] == "Armchair"
    assert updated["description"] == "Soft"
    assert updated["glbPath"] == model["glbPath"]

    textures = client.get(f"/api/admin/models/{model['id']}/textures", headers=admin_headers).json()
    assert len(textures) == 2


def test_put_with_file_replaces_asset(client, admin_headers):
    model = _create(client, admin_headers).json()

    resp = client.put(
        f"/api/admin/models/{model['id']}",
        files=[("model", ("chair-v2.glb", b"glb-v2", "model/gltf-binary"))],
        headers=admin_headers,
    )

    updated = resp.json()
    assert updated["glbPath"] != model["glbPath"]
    assert client.get(updated["glbPath"]).content == b"glb-v2"
    assert client.get(model["glbPath"]).status_code == 404


def test_put_unknown_model_is_404(client, admin_headers):
    resp = client.put("/api/admin/models/nope", data={"title": "x"}, headers=admin_headers)

    assert resp.status_code == 404


def test_delete_cascades_and_removes_files(client, admin_headers):
    model = _create(client, admin_headers, textures=("wood.png",), parts=json.dumps(["seat"])).json()
    file_store = client.app.state.file_store

    resp = client.delete(f"/api/admin/models/{model['id']}", headers=admin_headers)

    assert resp.status_code == 200
    assert resp.json() == {"success": True}
    assert client.get(f"/api/admin/models/{model['id']}", headers=admin_headers).status_code == 404
    assert client.get(f"/api/admin/models/{model['id']}/configurator", headers=admin_headers).json()["parts"] == []
    assert not file_store.model_dir(model["id"]).exists()
    assert not file_store.texture_dir(model["id"]).exists()

    assert client.delete(f"/api/admin/models/{model['id']}", headers=admin_headers).status_code == 404


def test_models_survive_restart(client, admin_headers, settings):
    model = _create(client, admin_headers, category="Furniture", parts=json.dumps(["seat"])).json()

    with TestClient(create_app(settings)) as restarted:
        login = restarted.post("/api/auth/login", json={"username": "admin", "password": "admin123"})
        headers = {"Authorization": f"Bearer {login.json()['token']}"}

        reloaded = restarted.get(f"/api/admin/models/{model['id']}", headers=headers).json()
        configurator = restarted.get(f"/api/admin/models/{model['id']}/configurator", headers=headers).json()

    for key in ("title", "category", "visible", "glbPath"):
        assert reloaded[key] == model[key]
    assert configurator["parts"] == ["seat"]
