import json

from conftest import image_bytes


def upload(client, count, captions=None, **data):
    files = [("photos", (f"p{i}.png", image_bytes(), "image/png")) for i in range(count)]
    if captions is not None:
        data["captions"] = json.dumps(captions)
    return client.post("/api/gallery/upload", data=data, files=files)


def test_upload_with_captions_and_listing_order(client):
    response = upload(client, 3, captions=["a", "b", "c"])
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["uploaded"] == 3
    assert [p["caption"] for p in body["photos"]] == ["a", "b", "c"]
    assert all(p["uploadedBy"] == "Anonymous" for p in body["photos"])
    assert all(p["url"].startswith("/gallery/") for p in body["photos"])

    listed = client.get("/api/gallery").json()
    assert {p["id"] for p in listed} == {p["id"] for p in body["photos"]}
    created = [p["createdAt"] for p in listed]
    assert created == sorted(created, reverse=True)


def test_newer_uploads_are_listed_first(client):
    first = upload(client, 1, captions=["older"]).json()["photos"][0]
    second = upload(client, 1, captions=["newer"]).json()["photos"][0]
    listed = client.get("/api/gallery").json()
    assert [p["id"] for p in listed] == [second["id"], first["id"]]


def test_captions_are_sanitized_and_capped(client):
    long_caption = "<b>" + "x" * 40 + "</b>"
    photos = upload(client, 2, captions=[long_caption], uploadedBy="<i>Tia Pepa</i>").json()["photos"]
    assert photos[0]["caption"] == "x" * 25
    assert photos[1]["caption"] == ""
    assert {p["uploadedBy"] for p in photos} == {"Tia Pepa"}


def test_malformed_captions_are_ignored(client):
    response = client.post(
        "/api/gallery/upload",
        data={"captions": "not json"},
        files=[("photos", ("p.png", image_bytes(), "image/png"))],
    )
    assert response.status_code == 200
    assert response.json()["photos"][0]["caption"] == ""


def test_upload_requires_files(client):
    response = client.post("/api/gallery/upload", data={"captions": "[]"})
    assert response.status_code == 400
    assert response.json()["message"] == "No photos uploaded"


def test_upload_rejects_more_than_ten_files(client):
    response = upload(client, 11)
    assert response.status_code == 400
    assert client.get("/api/gallery").json() == []


def test_one_bad_file_rejects_whole_upload(client, settings):
    files = [
        ("photos", ("ok.png", image_bytes(), "image/png")),
        ("photos", ("bad.exe", b"MZ", "application/octet-stream")),
    ]
    response = client.post("/api/gallery/upload", files=files)
    assert response.status_code == 400
    assert client.get("/api/gallery").json() == []


def test_delete_photo_removes_record_and_file(client):
    photo = upload(client, 1).json()["photos"][0]
    assert client.get(photo["url"]).status_code == 200

    response = client.delete(f"/api/gallery/{photo['id']}")
    assert response.status_code == 200
    assert client.get("/api/gallery").json() == []
    assert client.get(photo["url"]).status_code == 404


def test_delete_unknown_photo_is_404(client):
    assert client.delete("/api/gallery/missing").status_code == 404


def test_delete_never_touches_files_outside_gallery(client, app, settings):
    from shared.models import GalleryPhoto

    crafted = GalleryPhoto(url="/gallery/../family.json")
    app.state.gallery.append(crafted)

    response = client.delete(f"/api/gallery/{crafted.id}")
    assert response.status_code == 200
    assert client.get("/api/family").status_code == 200
    assert app.state.members.path.exists()
