import uuid

import pytest
from fastapi.testclient import TestClient

from appcollection import db


def post_link(client: TestClient, **fields) -> dict:
    body = {"title": "App", "url": "https://app.example.com"}
    body.update(fields)
    resp = client.post("/api/links", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        resp = client.get("/api/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert "T" in body["timestamp"]


class TestSetupDb:
    def test_is_idempotent(self, bare_api) -> None:
        client = TestClient(bare_api)
        for _ in range(2):
            resp = client.post("/api/setup-db")
            assert resp.status_code == 200
            assert resp.json() == {
                "success": True,
                "message": 'Table "links" created or already exists.',
            }
        assert client.get("/api/links").json() == []

    def test_missing_table_is_a_database_error(self, bare_api) -> None:
        resp = TestClient(bare_api).get("/api/links")
        assert resp.status_code == 500
        assert resp.json()["detail"].startswith("Database error")


class TestLinksApi:
    def test_create_assigns_uuid(self, client: TestClient) -> None:
        link = post_link(client, tags=["Game"], createdAt=1234)

        uuid.UUID(link["id"])
        assert link["createdAt"] == 1234
        assert link["tags"] == ["Game"]
        assert link["description"] == ""

    def test_create_without_timestamp(self, client: TestClient) -> None:
        link = post_link(client)
        assert link["createdAt"] > 1_600_000_000_000

    def test_client_id_is_ignored(self, client: TestClient) -> None:
        link = post_link(client, id="mine")
        assert link["id"] != "mine"

    def test_missing_required_fields(self, client: TestClient) -> None:
        assert client.post("/api/links", json={"url": "https://x"}).status_code == 422
        assert client.post("/api/links", json={"title": "x"}).status_code == 422

    def test_list_newest_first(self, client: TestClient) -> None:
        post_link(client, title="old", createdAt=1)
        post_link(client, title="newest", createdAt=3)
        post_link(client, title="middle", createdAt=2)

        titles = [l["title"] for l in client.get("/api/links").json()]
        assert titles == ["newest", "middle", "old"]

    def test_partial_update(self, client: TestClient) -> None:
        link = post_link(client, title="A", tags=["x"], createdAt=10)

        resp = client.put(
            f"/api/links/{link['id']}",
            json={"tags": ["y", "z"], "createdAt": 99, "id": "other"},
        )

        assert resp.status_code == 200
        updated = resp.json()
        assert updated == {**link, "tags": ["y", "z"]}

    def test_empty_update_changes_nothing(self, client: TestClient) -> None:
        link = post_link(client)
        assert client.put(f"/api/links/{link['id']}", json={}).json() == link

    @pytest.mark.parametrize("link_id", [str(uuid.uuid4()), "not-a-uuid"])
    def test_update_unknown(self, client: TestClient, link_id: str) -> None:
        resp = client.put(f"/api/links/{link_id}", json={"title": "B"})
        assert resp.status_code == 404

    def test_delete(self, client: TestClient) -> None:
        link = post_link(client)

        resp = client.delete(f"/api/links/{link['id']}")

        assert resp.status_code == 200
        assert resp.json() == {"success": True, "deletedId": link["id"]}
        assert client.get("/api/links").json() == []
        assert client.delete(f"/api/links/{link['id']}").status_code == 404

    def test_tags_stored_in_order_with_duplicates(self, client: TestClient, engine) -> None:
        link = post_link(client, tags=["b", "a", "b"])
        with db.make_sessionmaker(engine)() as session:
            row = session.get(db.LinkRow, uuid.UUID(link["id"]))
            assert row.tags == ["b", "a", "b"]


class TestFrontend:
    @pytest.fixture
    def dist(self, settings):
        dist = settings.static_dir
        (dist / "assets").mkdir(parents=True)
        (dist / "index.html").write_text("<html>apps</html>")
        (dist / "assets" / "app.js").write_text("console.log('hi')")
        return dist

    def test_index(self, client: TestClient, dist) -> None:
        resp = client.get("/")
        assert resp.status_code == 200
        assert "apps" in resp.text

    def test_static_file(self, client: TestClient, dist) -> None:
        resp = client.get("/assets/app.js")
        assert resp.status_code == 200
        assert "console.log" in resp.text

    def test_client_side_route_falls_back_to_index(self, client: TestClient, dist) -> None:
        resp = client.get("/some/client/route")
        assert resp.status_code == 200
        assert "apps" in resp.text

    def test_unknown_api_path(self, client: TestClient, dist) -> None:
        assert client.get("/api/nope").status_code == 404

    def test_no_build(self, client: TestClient) -> None:
        assert client.get("/").status_code == 404
