from datetime import datetime


def _ts(value):
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _payload(**kwargs):
    data = {
        "title": "Hello",
        "description": "Greets the world",
        "code": "print('hi')",
        "language": "Python",
        "tags": ["python", "basics"],
    }
    data.update(kwargs)
    return data


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_create_requires_session(client):
    response = client.post("/snippets", json=_payload())
    assert response.status_code == 401

    listing = client.get("/snippets").json()
    assert listing["items"] == []


def test_create_and_list(client, auth_headers, remote):
    response = client.post("/snippets", json=_payload(user_id="intruder"), headers=auth_headers)
    assert response.status_code == 201
    created = response.json()
    assert created["user_id"] == "user-1"
    assert created["created_at"] == created["updated_at"]
    assert created["id"] in remote.rows

    listing = client.get("/snippets", headers=auth_headers).json()
    assert listing["sync_status"] == "synced"
    assert listing["items"] == [created]
    assert listing["origins"] == {created["id"]: "synced"}


def test_list_without_session_sees_no_local_snippets(client, auth_headers):
    client.post("/snippets", json=_payload(title="secret", code="KEY=1"), headers=auth_headers)

    listing = client.get("/snippets").json()
    assert listing["sync_status"] == "local_only"
    assert listing["items"] == []
    assert client.get("/snippets/search", params={"q": "secret"}).json()["items"] == []
    assert client.get("/snippets/tags").json()["tags"] == []
    assert client.get("/snippets/by-tag/python").json()["items"] == []


def test_other_user_cannot_read_or_change_snippets(client, auth_headers, other_headers):
    created = client.post(
        "/snippets", json=_payload(title="secret", code="KEY=1"), headers=auth_headers
    ).json()

    assert client.get("/snippets", headers=other_headers).json()["items"] == []
    assert client.get("/snippets/by-tag/python", headers=other_headers).json()["items"] == []

    response = client.put(
        f"/snippets/{created['id']}", json={"title": "pwned"}, headers=other_headers
    )
    assert response.status_code == 404

    titles = [s["title"] for s in client.get("/snippets", headers=auth_headers).json()["items"]]
    assert titles == ["secret"]


def test_delete_without_session_leaves_owner_snippet(client, auth_headers, remote):
    created = client.post("/snippets", json=_payload(), headers=auth_headers).json()

    response = client.delete(f"/snippets/{created['id']}")
    assert response.status_code == 200
    assert response.json()["sync_status"] == "local_only"

    listing = client.get("/snippets", headers=auth_headers).json()
    assert [s["id"] for s in listing["items"]] == [created["id"]]
    assert listing["origins"] == {created["id"]: "synced"}
    assert created["id"] in remote.rows


def test_create_rejects_blank_title(client, auth_headers):
    response = client.post("/snippets", json=_payload(title=" "), headers=auth_headers)
    assert response.status_code == 422


def test_create_remote_failure_returns_local_copy(client, auth_headers, remote):
    remote.fail_writes = True

    response = client.post("/snippets", json=_payload(), headers=auth_headers)
    assert response.status_code == 502
    body = response.json()
    assert body["snippet"]["title"] == "Hello"

    remote.fail_writes = False
    remote.fail_reads = True
    listing = client.get("/snippets", headers=auth_headers).json()
    assert listing["sync_status"] == "degraded"
    assert [s["id"] for s in listing["items"]] == [body["snippet"]["id"]]


def test_update_snippet(client, auth_headers):
    created = client.post("/snippets", json=_payload(), headers=auth_headers).json()

    response = client.put(
        f"/snippets/{created['id']}", json={"title": "Renamed"}, headers=auth_headers
    )
    assert response.status_code == 200
    updated = response.json()
    assert updated["title"] == "Renamed"
    assert updated["created_at"] == created["created_at"]
    assert _ts(updated["updated_at"]) > _ts(created["updated_at"])


def test_update_missing_snippet(client, auth_headers):
    response = client.put("/snippets/missing", json={"title": "x"}, headers=auth_headers)
    assert response.status_code == 404


def test_update_without_session_does_not_reach_owner_snippet(client, auth_headers):
    created = client.post("/snippets", json=_payload(), headers=auth_headers).json()

    response = client.put(f"/snippets/{created['id']}", json={"title": "Offline"})
    assert response.status_code == 404

    titles = [s["title"] for s in client.get("/snippets", headers=auth_headers).json()["items"]]
    assert titles == ["Hello"]


def test_delete_snippet(client, auth_headers, remote):
    created = client.post("/snippets", json=_payload(), headers=auth_headers).json()

    response = client.delete(f"/snippets/{created['id']}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["message"] == "Snippet deleted successfully"
    assert response.json()["sync_status"] == "synced"
    assert created["id"] not in remote.rows

    again = client.delete(f"/snippets/{created['id']}", headers=auth_headers)
    assert again.status_code == 200
    assert client.get("/snippets", headers=auth_headers).json()["items"] == []


def test_search_tags_and_filter(client, auth_headers):
    client.post("/snippets", json=_payload(title="Parse FOO"), headers=auth_headers)
    client.post(
        "/snippets",
        json=_payload(title="Query", description="", tags=["sql", "python3"]),
        headers=auth_headers,
    )

    found = client.get("/snippets/search", params={"q": "foo"}, headers=auth_headers).json()["items"]
    assert [s["title"] for s in found] == ["Parse FOO"]

    everything = client.get("/snippets/search", params={"q": ""}, headers=auth_headers).json()["items"]
    assert len(everything) == 2

    by_tag = client.get("/snippets/by-tag/python", headers=auth_headers).json()["items"]
    assert [s["title"] for s in by_tag] == ["Parse FOO"]

    tags = client.get("/snippets/tags", headers=auth_headers).json()["tags"]
    assert sorted(tags) == ["basics", "python", "python3", "sql"]


def test_languages(client):
    languages = client.get("/languages").json()
    assert "Python" in languages
    assert "C++" in languages
