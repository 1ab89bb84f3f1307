import pytest


def test_media_list_filters_from_query_params(test_client, catalog, login):
    login(catalog["user"])

    response = test_client.get("/api/media", params={"title": "Naruto", "exclude_tag": "shounen"})
    assert response.status_code == 200
    data = response.json()
    assert [m["title"] for m in data["media"]] == ["Naruto Shippuden"]
    assert data["total"] == 1
    assert data["page"] == 1
    assert data["total_pages"] == 1


def test_media_list_shape_and_sort(test_client, catalog, login):
    login(catalog["user"])

    response = test_client.get("/api/media?type=anime&sort=release_year&order=asc")
    data = response.json()
    assert set(data) == {"media", "total", "page", "page_size", "total_pages"}
    assert [m["release_year"] for m in data["media"]] == [1999, 2002, 2007]


def test_media_list_ignores_unknown_sort(test_client, catalog, login):
    login(catalog["user"])

    response = test_client.get("/api/media?sort=password_hash&order=sideways")
    assert response.status_code == 200
    assert response.json()["total"] == 7


def test_media_list_page_past_end(test_client, catalog, login):
    login(catalog["user"])

    data = test_client.get("/api/media?page=99").json()
    assert data["media"] == []
    assert data["page"] == 99
    assert data["total"] == 7


def test_media_list_oversized_numbers(test_client, catalog, login):
    login(catalog["user"])

    response = test_client.get("/api/media", params={"year": "99999999999999999999"})
    assert response.status_code == 200
    assert response.json()["total"] == 7

    response = test_client.get("/api/media", params={"page": str(10 ** 20)})
    assert response.status_code == 200
    assert response.json()["media"] == []


def test_lookups(test_client, test_user, login):
    login(test_user)

    types = [t["name"] for t in test_client.get("/api/media/types").json()]
    assert "anime" in types and "novel" in types
    statuses = [s["name"] for s in test_client.get("/api/media/statuses").json()]
    assert "ongoing" in statuses


def _lookup(test_client, path, name):
    return next(row["id"] for row in test_client.get(path).json() if row["name"] == name)


def test_create_update_delete_media(test_client, test_user, login):
    login(test_user)
    movie = _lookup(test_client, "/api/media/types", "movie")
    completed = _lookup(test_client, "/api/media/statuses", "completed")

    response = test_client.post("/api/media", json={
        "title": "  Heat  ",
        "type_id": movie,
        "status_id": completed,
        "release_year": 1995
    })
    assert response.status_code == 201
    media = response.json()
    assert media["title"] == "Heat"
    assert media["type"]["name"] == "movie"
    assert media["created_by"]["id"] == test_user["id"]

    response = test_client.patch(f"/api/media/{media['id']}", json={"description": "LA crime"})
    assert response.status_code == 200
    assert response.json()["description"] == "LA crime"
    assert response.json()["release_year"] == 1995

    assert test_client.delete(f"/api/media/{media['id']}").status_code == 200
    assert test_client.get(f"/api/media/{media['id']}").status_code == 404


@pytest.mark.parametrize("payload,status", [
    ({"title": "   ", "type_id": 1, "status_id": 1}, 400),
    ({"title": "X", "type_id": 9999, "status_id": 1}, 400),
    ({"title": "X", "type_id": 1, "status_id": 9999}, 400),
    ({"title": "X"}, 422),
])
def test_create_media_validation(test_client, test_user, login, payload, status):
    login(test_user)
    assert test_client.post("/api/media", json=payload).status_code == status


def test_only_creator_or_admin_can_modify(test_client, catalog, login, test_db):
    from db.users import create_user
    create_user("other", "otherpass", None, "user")
    media_id = catalog["media"]["Dune"]

    login({"username": "other", "password": "otherpass"})
    assert test_client.patch(f"/api/media/{media_id}", json={"title": "Dune II"}).status_code == 403
    assert test_client.delete(f"/api/media/{media_id}").status_code == 403

    login(catalog["admin"])
    assert test_client.patch(f"/api/media/{media_id}", json={"title": "Dune II"}).status_code == 200


def test_media_tags(test_client, catalog, login):
    login(catalog["admin"])
    media_id = catalog["media"]["Frieren"]

    response = test_client.post(f"/api/media/{media_id}/tags", json={"name": "fantasy"})
    assert response.status_code == 200
    assert response.json()["tags"] == ["fantasy"]

    assert test_client.post(f"/api/media/{media_id}/tags", json={"name": "FANTASY"}).status_code == 409
    assert test_client.post(f"/api/media/{media_id}/tags", json={"name": "a,b"}).status_code == 400

    listed = test_client.get("/api/media?tag=fantasy").json()
    assert [m["title"] for m in listed["media"]] == ["Frieren"]

    response = test_client.delete(f"/api/media/{media_id}/tags/fantasy")
    assert response.status_code == 200
    assert response.json()["tags"] == []
    assert test_client.delete(f"/api/media/{media_id}/tags/fantasy").status_code == 404


def test_media_characters(test_client, catalog, login):
    login(catalog["user"])
    media_id = catalog["media"]["Frieren"]

    response = test_client.post("/api/characters", json={"name": "Frieren"})
    character_id = response.json()["id"]
    role_id = catalog["roles"]["protagonist"]

    response = test_client.post(f"/api/media/{media_id}/characters", json={
        "character_id": character_id, "role_id": role_id
    })
    assert response.status_code == 201
    duplicate = test_client.post(f"/api/media/{media_id}/characters", json={
        "character_id": character_id, "role_id": role_id
    })
    assert duplicate.status_code == 409

    listed = test_client.get(f"/api/media/{media_id}/characters").json()
    assert listed == [{
        "id": response.json()["id"],
        "character": {"id": character_id, "name": "Frieren"},
        "role": {"id": role_id, "name": "protagonist"},
    }]

    assert test_client.delete(f"/api/media/{media_id}/characters/{character_id}").status_code == 200
    assert test_client.get(f"/api/media/{media_id}/characters").json() == []


def test_media_characters_unknown_ids(test_client, catalog, login):
    login(catalog["user"])
    media_id = catalog["media"]["Dune"]

    assert test_client.get("/api/media/9999/characters").status_code == 404
    response = test_client.post(f"/api/media/{media_id}/characters", json={"character_id": 9999, "role_id": 1})
    assert response.status_code == 404
    character_id = catalog["characters"]["Stray Cat"]
    response = test_client.post(f"/api/media/{media_id}/characters", json={"character_id": character_id, "role_id": 9999})
    assert response.status_code == 400
