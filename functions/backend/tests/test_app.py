import base64
import io
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient
from PIL import Image

from backend.app import create_app
from backend.config import Settings, get_settings
from backend.db import InMemoryBoardRepository, RepositoryError
from backend.dependencies import (
    get_media_storage,
    get_repository,
    get_video_compressor,
)
from backend.storage import InlineMediaStorage, StoredMedia
from media_pipeline.compression import CompressionError, CompressionResult
from media_pipeline.video_compression import VideoCompressor


def _png_b64(size=(64, 48)) -> str:
    buf = io.BytesIO()
    Image.new("RGB", size, (200, 30, 30)).save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode("ascii")


def _note_payload(**overrides):
    payload = {
        "id": "note-1",
        "category": "general",
        "x": 10,
        "y": 20,
        "content": "hello",
        "author": "Ada",
        "authorId": "user_1_abc",
        "color": "#fff59d",
    }
    payload.update(overrides)
    return payload


class _StaticStrategy:
    def __init__(self, name, result=None, error=None):
        self.name = name
        self.result = result
        self.error = error

    def compress(self, data, file_name):
        if self.error:
            raise self.error
        return self.result


class _BrokenRepository(InMemoryBoardRepository):
    def list_notes(self, category):
        raise RepositoryError("connection refused")


class _FailingPostRepository(InMemoryBoardRepository):
    def add_post(self, post):
        raise RepositoryError("disk full")


class _RecordingStorage(InlineMediaStorage):
    """Inline storage that also reports an object path, like object storage does."""

    def __init__(self):
        super().__init__()
        self.objects = {}

    def store(self, post_id, file_name, data, mime_type):
        stored = super().store(post_id, file_name, data, mime_type)
        path = f"posts/{post_id}/{file_name}"
        self.objects[path] = data
        return StoredMedia(src=stored.src, storage_path=path)

    def delete(self, storage_path):
        self.objects.pop(storage_path, None)


class BoardApiTestCase(unittest.TestCase):
    settings_overrides: dict = {}

    def setUp(self):
        self.app = create_app()
        self.repository = InMemoryBoardRepository()
        self.storage = InlineMediaStorage()
        self.compressor = VideoCompressor([])
        self.settings = Settings(**self.settings_overrides)
        self.app.dependency_overrides[get_repository] = lambda: self.repository
        self.app.dependency_overrides[get_media_storage] = lambda: self.storage
        self.app.dependency_overrides[get_video_compressor] = lambda: self.compressor
        self.app.dependency_overrides[get_settings] = lambda: self.settings
        self.client = TestClient(self.app)


class HealthTests(BoardApiTestCase):
    def test_health_reports_backends(self):
        response = self.client.get("/api/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json(), {"status": "ok", "backend": "memory", "media": "inline"}
        )

    def test_cors_does_not_allow_credentials_by_default(self):
        response = self.client.get("/api/health", headers={"Origin": "https://board.example"})
        self.assertEqual(response.headers["access-control-allow-origin"], "*")
        self.assertNotIn("access-control-allow-credentials", response.headers)


class NoteApiTests(BoardApiTestCase):
    def test_create_and_list_notes(self):
        response = self.client.post("/api/notes", json=_note_payload())
        self.assertEqual(response.status_code, 201)
        note = response.json()
        self.assertEqual(note["id"], "note-1")
        self.assertEqual(note["authorId"], "user_1_abc")
        self.assertTrue(note["createdAt"].endswith("Z"))
        self.assertEqual(note["createdAt"], note["updatedAt"])

        listed = self.client.get("/api/notes/general").json()
        self.assertEqual([n["id"] for n in listed], ["note-1"])
        self.assertEqual(self.client.get("/api/notes/other").json(), [])

    def test_empty_content_is_allowed(self):
        response = self.client.post("/api/notes", json=_note_payload(content=""))
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["content"], "")

    def test_author_name_is_trimmed(self):
        response = self.client.post("/api/notes", json=_note_payload(author="   "))
        # Blank author is a missing required field.
        self.assertEqual(response.status_code, 400)

        response = self.client.post("/api/notes", json=_note_payload(author="  Ada  "))
        self.assertEqual(response.json()["author"], "Ada")

    def test_missing_fields_rejected(self):
        for field in ("id", "category", "author", "color", "content"):
            payload = _note_payload()
            del payload[field]
            response = self.client.post("/api/notes", json=payload)
            self.assertEqual(response.status_code, 400, field)
            self.assertEqual(response.json()["detail"], "Missing required fields")

    def test_missing_author_id_rejected(self):
        payload = _note_payload()
        del payload["authorId"]
        response = self.client.post("/api/notes", json=payload)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Author ID is required")

    def test_duplicate_id_conflicts(self):
        self.client.post("/api/notes", json=_note_payload())
        response = self.client.post("/api/notes", json=_note_payload(content="again"))
        self.assertEqual(response.status_code, 409)

    def test_update_note(self):
        self.client.post("/api/notes", json=_note_payload())
        response = self.client.put(
            "/api/notes/note-1", json={"content": "edited", "x": 99, "width": 240}
        )
        self.assertEqual(response.status_code, 200)
        note = response.json()
        self.assertEqual(note["content"], "edited")
        self.assertEqual(note["x"], 99)
        self.assertEqual(note["width"], 240)
        self.assertEqual(note["y"], 20)

    def test_update_missing_note(self):
        response = self.client.put("/api/notes/nope", json={"content": "x"})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["detail"], "Note not found")

    def test_delete_note(self):
        self.client.post("/api/notes", json=_note_payload())
        response = self.client.delete("/api/notes/note-1")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"message": "Note deleted successfully"})
        self.assertEqual(self.client.delete("/api/notes/note-1").status_code, 404)

    def test_author_mismatch_forbidden(self):
        self.client.post("/api/notes", json=_note_payload())
        response = self.client.delete("/api/notes/note-1", params={"authorId": "user_2_xyz"})
        self.assertEqual(response.status_code, 403)
        response = self.client.put(
            "/api/notes/note-1",
            params={"authorId": "user_1_abc"},
            json={"content": "mine"},
        )
        self.assertEqual(response.status_code, 200)

    def test_repository_failure_maps_to_500(self):
        self.repository = _BrokenRepository()
        response = self.client.get("/api/notes/general")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["detail"], "Failed to list notes")


class PostApiTests(BoardApiTestCase):
    def _create_post(self, **overrides):
        payload = {
            "title": "Sunset",
            "category": "general",
            "fileData": _png_b64(),
            "fileName": "sunset.png",
            "authorId": "user_1_abc",
        }
        payload.update(overrides)
        return self.client.post("/api/posts", json=payload)

    def test_create_and_list_posts(self):
        response = self._create_post()
        self.assertEqual(response.status_code, 201)
        post = response.json()
        self.assertTrue(post["src"].startswith("data:image/png;base64,"))
        self.assertEqual(post["fileName"], "sunset.png")
        self.assertNotIn("storagePath", post)

        listed = self.client.get("/api/posts/general").json()
        self.assertEqual([p["id"] for p in listed], [post["id"]])

    def test_data_url_upload_accepted(self):
        response = self._create_post(fileData="data:image/png;base64," + _png_b64())
        self.assertEqual(response.status_code, 201)

    def test_invalid_base64_rejected(self):
        response = self._create_post(fileData="not base64!!")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Invalid file data")

    def test_missing_fields_rejected(self):
        self.assertEqual(self._create_post(title="").status_code, 400)
        response = self._create_post(authorId=None)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Author ID is required")

    def test_update_title(self):
        post = self._create_post().json()
        response = self.client.put(f"/api/posts/{post['id']}", json={"title": " New "})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["title"], "New")
        self.assertEqual(
            self.client.put(f"/api/posts/{post['id']}", json={}).status_code, 400
        )
        self.assertEqual(
            self.client.put("/api/posts/missing", json={"title": "x"}).status_code, 404
        )

    def test_delete_post(self):
        post = self._create_post().json()
        response = self.client.delete(f"/api/posts/{post['id']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get("/api/posts/general").json(), [])
        self.assertEqual(self.client.delete(f"/api/posts/{post['id']}").status_code, 404)

    def test_failed_save_removes_uploaded_media(self):
        self.repository = _FailingPostRepository()
        self.storage = _RecordingStorage()
        response = self._create_post(fileName="clip.mp4")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["detail"], "Failed to create post")
        self.assertEqual(self.storage.objects, {})


class UploadLimitTests(BoardApiTestCase):
    settings_overrides = {"max_upload_mb": 0.001}

    def test_oversized_upload_rejected(self):
        data = base64.b64encode(b"\0" * 4096).decode("ascii")
        response = self.client.post(
            "/api/posts",
            json={
                "title": "Big",
                "category": "general",
                "fileData": data,
                "fileName": "big.mp4",
                "authorId": "user_1_abc",
            },
        )
        self.assertEqual(response.status_code, 413)


class ServerImageCompressionTests(BoardApiTestCase):
    settings_overrides = {"compress_uploaded_images": True, "image_max_width": 32}

    def test_large_image_is_downscaled_to_jpeg(self):
        buf = io.BytesIO()
        Image.effect_noise((400, 300), 80).convert("RGB").save(buf, format="PNG")
        response = self.client.post(
            "/api/posts",
            json={
                "title": "Noise",
                "category": "general",
                "fileData": base64.b64encode(buf.getvalue()).decode("ascii"),
                "fileName": "noise.png",
                "authorId": "user_1_abc",
            },
        )
        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.json()["src"].startswith("data:image/jpeg;base64,"))

    def test_undecodable_image_is_stored_as_uploaded(self):
        original = _png_b64()
        with patch("PIL.Image.MAX_IMAGE_PIXELS", 100):
            response = self.client.post(
                "/api/posts",
                json={
                    "title": "Huge",
                    "category": "general",
                    "fileData": original,
                    "fileName": "huge.png",
                    "authorId": "user_1_abc",
                },
            )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["src"], "data:image/png;base64," + original)


class CompressionApiTests(BoardApiTestCase):
    def test_video_passthrough_without_strategies(self):
        data = base64.b64encode(b"video-bytes").decode("ascii")
        response = self.client.post(
            "/api/compress-video", json={"fileData": data, "fileName": "clip.mp4"}
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["outcome"], "passthrough")
        self.assertEqual(body["compressedData"], data)
        self.assertEqual(body["message"], "Video compression not available")

    def test_video_compressed_by_first_working_strategy(self):
        result = CompressionResult(
            data=b"small",
            mime_type="video/mp4",
            original_size=10,
            compressed_size=5,
            ratio=50.0,
        )
        self.compressor = VideoCompressor(
            [
                _StaticStrategy("cloudconvert", error=CompressionError("quota")),
                _StaticStrategy("ffmpeg", result=result),
            ]
        )
        data = base64.b64encode(b"0123456789").decode("ascii")
        response = self.client.post(
            "/api/compress-video", json={"fileData": data, "fileName": "clip.mov"}
        )
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["strategy"], "ffmpeg")
        self.assertEqual(base64.b64decode(body["compressedData"]), b"small")
        self.assertEqual(body["ratio"], 50.0)
        self.assertEqual(len(body["errors"]), 1)

    def test_video_missing_fields(self):
        response = self.client.post("/api/compress-video", json={"fileName": "a.mp4"})
        self.assertEqual(response.status_code, 400)

    def test_compress_image(self):
        response = self.client.post(
            "/api/compress-image",
            json={"fileData": _png_b64((200, 100)), "fileName": "a.png", "maxWidth": 50},
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["mimeType"], "image/jpeg")
        img = Image.open(io.BytesIO(base64.b64decode(body["compressedData"])))
        self.assertEqual(img.size, (50, 25))

    def test_compress_image_rejects_garbage(self):
        data = base64.b64encode(b"not an image").decode("ascii")
        response = self.client.post(
            "/api/compress-image", json={"fileData": data, "fileName": "a.png"}
        )
        self.assertEqual(response.status_code, 400)

    def test_compress_image_rejects_oversized_image(self):
        with patch("PIL.Image.MAX_IMAGE_PIXELS", 100):
            response = self.client.post(
                "/api/compress-image", json={"fileData": _png_b64(), "fileName": "a.png"}
            )
        self.assertEqual(response.status_code, 400)

    def test_video_strategy_crash_passes_original_through(self):
        self.compressor = VideoCompressor([_StaticStrategy("ffmpeg", error=KeyError("x"))])
        data = base64.b64encode(b"video-bytes").decode("ascii")
        response = self.client.post(
            "/api/compress-video", json={"fileData": data, "fileName": "clip.mp4"}
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["outcome"], "passthrough")
        self.assertEqual(body["compressedData"], data)
        self.assertEqual(body["message"], "Video compression failed, original returned")


if __name__ == "__main__":
    unittest.main()
