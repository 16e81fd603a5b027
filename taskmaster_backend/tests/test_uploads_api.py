import os

import pytest

# Smallest valid GIF
GIF_BYTES = (
    b"GIF89a\x01\x00\x01\x00\x80\x00\x00\x00\x00\x00\xff\xff\xff!\xf9\x04\x01\x00\x00\x00\x00"
    b",\x00\x00\x00\x00\x01\x00\x01\x00\x00\x02\x02D\x01\x00;"
)


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path))
    return tmp_path


class TestImageUpload:
    def test_upload_and_delete(self, client, upload_dir):
        res = client.post(
            "/api/v1/uploads/image",
            files={"image": ("Photo.GIF", GIF_BYTES, "image/gif")},
        )
        assert res.status_code == 200, res.text
        body = res.json()
        assert body["message"] == "Image uploaded successfully"
        stored = body["file"]
        assert stored["filename"].startswith("task-image-")
        assert stored["filename"].endswith(".gif")
        assert stored["original_name"] == "Photo.GIF"
        assert stored["size"] == len(GIF_BYTES)
        assert stored["mimetype"] == "image/gif"
        assert stored["url"] == f"/uploads/{stored['filename']}"
        assert (upload_dir / stored["filename"]).read_bytes() == GIF_BYTES

        res = client.delete(f"/api/v1/uploads/image/{stored['filename']}")
        assert res.status_code == 204
        assert not os.path.exists(upload_dir / stored["filename"])
        assert client.delete(f"/api/v1/uploads/image/{stored['filename']}").status_code == 404

    def test_rejects_non_image(self, client, upload_dir):
        res = client.post(
            "/api/v1/uploads/image",
            files={"image": ("notes.txt", b"hello", "text/plain")},
        )
        assert res.status_code == 400
        assert res.json()["message"] == "Only image files (JPEG, PNG, GIF, WebP) are allowed"
        assert list(upload_dir.iterdir()) == []

    def test_rejects_oversized(self, client, upload_dir, monkeypatch):
        monkeypatch.setenv("MAX_UPLOAD_BYTES", "10")
        res = client.post(
            "/api/v1/uploads/image",
            files={"image": ("big.png", b"\x89PNG" + b"0" * 64, "image/png")},
        )
        assert res.status_code == 400
        assert res.json()["detail"]["max_bytes"] == 10

    def test_extension_follows_content_type(self, client, upload_dir):
        res = client.post(
            "/api/v1/uploads/image",
            files={"image": ("page.html", GIF_BYTES, "image/gif")},
        )
        assert res.status_code == 200
        stored = res.json()["file"]
        assert stored["filename"].endswith(".gif")
        assert stored["original_name"] == "page.html"
        assert [p.name for p in upload_dir.iterdir()] == [stored["filename"]]

    def test_missing_file_field(self, client, upload_dir):
        res = client.post("/api/v1/uploads/image", files={"other": ("a.png", b"x", "image/png")})
        assert res.status_code == 422

    def test_delete_rejects_foreign_names(self, client, upload_dir):
        res = client.delete("/api/v1/uploads/image/passwd")
        assert res.status_code == 400

    def test_uploaded_url_can_be_stored_on_task(self, client, upload_dir):
        stored = client.post(
            "/api/v1/uploads/image",
            files={"image": ("a.gif", GIF_BYTES, "image/gif")},
        ).json()["file"]
        task = client.post("/api/v1/tasks/", json={"title": "with image", "image_url": stored["url"]}).json()
        assert task["image_url"] == stored["url"]
