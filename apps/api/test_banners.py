"""Promotional banners"""


def create_banner(client, headers, **fields):
    payload = {"title": "Winter Skincare", "image_url": "https://cdn.example/winter.jpg"}
    payload.update(fields)
    return client.post("/api/banners", json=payload, headers=headers)


def test_banners_are_listed_in_display_order(client, admin_headers):
    create_banner(client, admin_headers, title="Second", display_order=2)
    create_banner(client, admin_headers, title="First", display_order=1)
    create_banner(client, admin_headers, title="Hidden", display_order=0, is_active=False)

    response = client.get("/api/banners?active=true", headers=admin_headers)

    data = response.json()["data"]
    assert [b["title"] for b in data["banners"]] == ["First", "Second"]
    assert data["total"] == 2


def test_banner_requires_title(client, admin_headers):
    response = create_banner(client, admin_headers, title=" ")

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Title is required"


def test_kam_can_view_but_not_create_banners(client, admin_headers, kam_headers):
    create_banner(client, admin_headers)

    assert client.get("/api/banners", headers=kam_headers).status_code == 200
    assert create_banner(client, kam_headers).status_code == 403


def test_update_and_delete_banner(client, admin_headers):
    banner_id = create_banner(client, admin_headers).json()["data"]["id"]

    response = client.put(f"/api/banners/{banner_id}", json={"is_active": False}, headers=admin_headers)
    assert response.json()["data"]["is_active"] is False

    response = client.delete(f"/api/banners/{banner_id}", headers=admin_headers)
    assert response.status_code == 200
    assert client.get(f"/api/banners/{banner_id}", headers=admin_headers).status_code == 404
