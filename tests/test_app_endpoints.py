import io

import pytest
from fastapi.testclient import TestClient
from openpyxl import load_workbook

from conftest import FakeClock, write_articles

from cms.app import build_services, create_app
from cms.auth.session import COOKIE_NAME

NEW_ARTICLE = {"title": "Test", "content": "Content", "date": "2025-05-14", "image": "test.jpg"}


@pytest.fixture()
def app_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def client(tmp_path, users_yaml, secret_key, app_clock):
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    write_articles(data_dir / "articles.json", range(1, 8))
    services = build_services(data_dir=data_dir, users_path=users_yaml, clock=app_clock)
    return TestClient(create_app(services))


@pytest.fixture()
def admin(client):
    r = client.post("/login", auth=("admin", "password"))
    assert r.status_code == 200
    return client


def test_get_articles_paginates(client):
    r = client.get("/articles?page=1&limit=2")
    assert r.status_code == 200
    assert [a["id"] for a in r.json()] == [1, 2]

    r = client.get("/articles", params={"page": 2, "limit": 5})
    assert [a["id"] for a in r.json()] == [6, 7]
    assert set(r.json()[0]) == {"id", "title", "content", "date", "image"}


def test_get_articles_defaults_and_out_of_range(client):
    assert len(client.get("/articles").json()) == 5
    assert len(client.get("/articles?page=-2&limit=abc").json()) == 5
    assert client.get("/articles?page=9").json() == []


def test_get_article(client):
    r = client.get("/article/1")
    assert r.status_code == 200
    assert r.json()["title"] == "Title 1"
    assert client.get("/article/999").status_code == 404
    assert client.get("/article/abc").status_code == 404


def test_login_rejects_bad_credentials(client):
    r = client.post("/login", auth=("fakeuser", "fakepassword"))
    assert r.status_code == 401
    assert COOKIE_NAME not in r.cookies
    assert client.post("/login").status_code == 401


def test_login_sets_cookie(client):
    r = client.post("/login", auth=("admin", "password"))
    assert r.status_code == 200
    assert r.json() == {"message": "Login successful"}
    assert COOKIE_NAME in client.cookies


def test_admin_requires_session(client):
    assert client.post("/admin/add", json=NEW_ARTICLE).status_code == 401
    assert client.put("/admin/edit/1", json=NEW_ARTICLE).status_code == 401
    assert client.delete("/admin/delete/1").status_code == 401
    assert client.get("/admin/export.csv").status_code == 401
    assert len(client.get("/articles?limit=50").json()) == 7


def test_forged_cookie_is_rejected(client):
    client.cookies.set(COOKIE_NAME, "not-a-signed-token")
    assert client.post("/admin/add", json=NEW_ARTICLE).status_code == 401


def test_add_article(admin):
    r = admin.post("/admin/add", json=NEW_ARTICLE)
    assert r.status_code == 200
    assert r.json() == {"id": 8, **NEW_ARTICLE}
    assert admin.get("/article/8").json()["title"] == "Test"


def test_add_ignores_payload_id(admin):
    r = admin.post("/admin/add", json={**NEW_ARTICLE, "id": 1})
    assert r.json()["id"] == 8


def test_edit_article_keeps_id(admin):
    r = admin.put("/admin/edit/3", json={"id": 42, "title": "Updated", "content": "New Content", "date": "2025-06-01", "image": "updated.jpg"})
    assert r.status_code == 200
    assert r.json()["id"] == 3
    assert r.json()["title"] == "Updated"
    assert admin.get("/article/42").status_code == 404


def test_edit_missing_article(admin):
    assert admin.put("/admin/edit/999", json=NEW_ARTICLE).status_code == 404
    assert admin.put("/admin/edit/abc", json=NEW_ARTICLE).status_code == 404


def test_delete_article(admin):
    r = admin.delete("/admin/delete/2")
    assert r.status_code == 200
    ids = [a["id"] for a in admin.get("/articles?limit=50").json()]
    assert ids == [1, 3, 4, 5, 6, 7]
    assert admin.delete("/admin/delete/2").status_code == 404


@pytest.mark.parametrize("body", ['{"title": ', '[1, 2]', '{"title": 5}'])
def test_invalid_body_is_400_and_store_untouched(admin, body):
    r = admin.post("/admin/add", content=body, headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    assert len(admin.get("/articles?limit=50").json()) == 7


def test_logout(admin):
    r = admin.post("/logout")
    assert r.status_code == 200
    assert r.json() == {"message": "Logged out"}
    assert admin.post("/admin/add", json=NEW_ARTICLE).status_code == 401


def test_logout_without_session_succeeds(client):
    assert client.post("/logout").status_code == 200


def test_session_expires_after_inactivity(admin, app_clock):
    app_clock.advance(1800)
    assert admin.post("/admin/add", json=NEW_ARTICLE).status_code == 401


def test_activity_keeps_session_alive(admin, app_clock):
    app_clock.advance(1799)
    assert admin.post("/admin/add", json=NEW_ARTICLE).status_code == 200
    app_clock.advance(1799)
    assert admin.delete("/admin/delete/8").status_code == 200


def test_corrupt_store_is_generic_500(client, tmp_path):
    (tmp_path / "data" / "articles.json").write_text("{oops", encoding="utf-8")
    r = client.get("/articles")
    assert r.status_code == 500
    assert r.json() == {"detail": "Internal server error"}


def test_export_csv(admin):
    r = admin.get("/admin/export.csv")
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    lines = r.text.strip().splitlines()
    assert lines[0] == "id,title,content,date,image"
    assert len(lines) == 8


def test_export_xlsx(admin):
    r = admin.get("/admin/export.xlsx")
    assert r.status_code == 200
    ws = load_workbook(io.BytesIO(r.content))["Articles"]
    rows = list(ws.iter_rows(values_only=True))
    assert rows[0] == ("id", "title", "content", "date", "image")
    assert [row[0] for row in rows[1:]] == [1, 2, 3, 4, 5, 6, 7]


def test_cors_headers(client):
    r = client.options(
        "/articles",
        headers={"Origin": "http://example.com", "Access-Control-Request-Method": "GET"},
    )
    assert r.status_code == 200
    assert r.headers["access-control-allow-origin"] == "*"


@pytest.mark.parametrize("body", ['{"title": 5}', '{"title": ', ""])
def test_anonymous_malformed_add_is_401(client, body):
    r = client.post("/admin/add", content=body, headers={"Content-Type": "application/json"})
    assert r.status_code == 401
    assert "errors" not in r.json()


def test_anonymous_malformed_edit_is_401(client):
    r = client.put("/admin/edit/1", content='{"title": 5}', headers={"Content-Type": "application/json"})
    assert r.status_code == 401
    assert client.get("/article/1").json()["title"] == "Title 1"


def test_empty_body_is_400_for_admin(admin):
    assert admin.post("/admin/add").status_code == 400


@pytest.mark.parametrize("raw_id", ["1_0", "%201", "1.0"])
def test_article_id_must_be_plain_digits(client, raw_id):
    assert client.get(f"/article/{raw_id}").status_code == 404


def test_relogin_revokes_previous_session(client):
    assert client.post("/login", auth=("admin", "password")).status_code == 200
    old = client.cookies[COOKIE_NAME]
    assert client.post("/login", auth=("admin", "password")).status_code == 200
    assert client.cookies[COOKIE_NAME] != old
    assert len(client.app.state.services.sessions) == 1

    client.cookies.clear()
    client.cookies.set(COOKIE_NAME, old)
    assert client.post("/admin/add", json=NEW_ARTICLE).status_code == 401


def test_abandoned_sessions_do_not_accumulate(client, app_clock):
    for _ in range(50):
        client.cookies.clear()
        assert client.post("/login", auth=("admin", "password")).status_code == 200
        app_clock.advance(3600)
    client.cookies.clear()
    client.post("/login", auth=("admin", "password"))
    assert len(client.app.state.services.sessions) == 1
