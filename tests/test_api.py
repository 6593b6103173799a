"""
HTTP API tests.

The app runs inside TestClient's context manager so its event loop stays up
between requests and background training tasks keep running.
"""

import time

import pytest
from fastapi.testclient import TestClient

from helpers import set_behavior
from voice_clone.main import create_app


def wav(name="take.wav", size=64):
    return ("audio_files", (name, b"RIFF" + b"\x00" * size, "audio/wav"))


@pytest.fixture
def client(test_settings):
    with TestClient(create_app(test_settings)) as client:
        yield client


def wait_for_status(client, job_id, statuses, timeout=20.0):
    deadline = time.monotonic() + timeout
    while True:
        response = client.get(f"/train/status/{job_id}")
        assert response.status_code == 200
        body = response.json()
        if body["status"] in statuses:
            return body
        if time.monotonic() > deadline:
            raise AssertionError(f"Timed out waiting for {statuses}; last: {body['status']}")
        time.sleep(0.05)


def train(client, model_name="alice", epochs="3", files=None):
    return client.post(
        "/train",
        data={"model_name": model_name, "epochs": epochs},
        files=files or [wav("one.wav"), wav("two.mp3")],
    )


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["version"] == "1.0.0"
        assert "train" in body["endpoints"]


class TestTrainingEndpoints:
    """Submit, poll, download"""

    def test_train_and_download(self, client, test_settings):
        response = train(client)

        assert response.status_code == 202
        body = response.json()
        job_id = body["job_id"]
        assert body["status"] == "queued"
        assert body["status_url"] == f"/train/status/{job_id}"
        assert body["audio_files"] == 2
        assert body["epochs"] == 3
        assert body["estimated_duration"] == "2 minutes"

        status = wait_for_status(client, job_id, {"completed", "failed"})
        assert status["status"] == "completed", status["error"]
        assert status["progress"] == 100
        assert status["current_epoch"] == 3
        assert status["download_url"] == f"/train/download/{job_id}"

        download = client.get(status["download_url"])
        assert download.status_code == 200
        assert download.content == test_settings.paths.get_model_path("alice").read_bytes()

        jobs = client.get("/train/jobs").json()["jobs"]
        assert [j["job_id"] for j in jobs] == [job_id]

        models = client.get("/models").json()
        assert models["total"] == 1
        assert models["models"][0]["name"] == "alice"
        assert models["models"][0]["has_index"] is True

    def test_invalid_model_name_creates_no_job(self, client, test_settings):
        response = train(client, model_name="bad name!")

        assert response.status_code == 400
        assert response.json()["error"] == "Validation error"
        assert client.get("/train/jobs").json()["jobs"] == []
        assert list(test_settings.paths.training_root.iterdir()) == []

    def test_malformed_form_field_uses_error_shape(self, client, test_settings):
        response = train(client, epochs="abc")

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Validation error"
        assert "epochs" in body["details"]
        assert client.get("/train/jobs").json()["jobs"] == []
        assert list(test_settings.paths.training_root.iterdir()) == []

    def test_missing_files_rejected(self, client):
        response = client.post("/train", data={"model_name": "alice"})

        assert response.status_code == 400
        assert "No audio files" in response.json()["details"]

    def test_bad_extension_rejected(self, client, test_settings):
        response = train(client, files=[wav("notes.txt")])

        assert response.status_code == 400
        assert list(test_settings.paths.training_root.iterdir()) == []

    def test_unknown_job(self, client):
        assert client.get("/train/status/nope").status_code == 404
        assert client.get("/train/download/nope").status_code == 404
        assert client.post("/train/nope/cancel").status_code == 404
        assert client.delete("/train/nope").status_code == 404

    def test_failed_job_reports_error(self, client, fake_toolkit):
        set_behavior(fake_toolkit, train="fail")

        job_id = train(client).json()["job_id"]
        status = wait_for_status(client, job_id, {"completed", "failed"})

        assert status["status"] == "failed"
        assert "train exploded" in status["error"]
        assert status["download_url"] is None
        assert client.get(f"/train/download/{job_id}").status_code == 400

    def test_cancel_and_delete(self, client, fake_toolkit, test_settings):
        set_behavior(fake_toolkit, train="hang")
        job_id = train(client).json()["job_id"]
        wait_for_status(client, job_id, {"training"})

        cancelled = client.post(f"/train/{job_id}/cancel")
        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "cancelled"

        deleted = client.delete(f"/train/{job_id}")
        assert deleted.status_code == 200
        assert client.get(f"/train/status/{job_id}").status_code == 404
        assert not test_settings.paths.get_job_dir(job_id).exists()


class TestConversionEndpoints:
    def test_convert_and_download(self, client, test_settings):
        test_settings.paths.get_model_path("alice").write_bytes(b"weights")

        response = client.post(
            "/convert",
            data={"model_name": "alice", "pitch_shift": "2"},
            files={"audio": ("voice.wav", b"RIFF" + b"\x00" * 16, "audio/wav")},
        )

        assert response.status_code == 200, response.text
        body = response.json()
        assert body["status"] == "completed"
        assert body["output_url"] == f"/convert/download/{body['job_id']}"
        assert list(test_settings.paths.convert_input_dir.iterdir()) == []

        download = client.get(body["output_url"])
        assert download.status_code == 200
        assert b"--pitch_shift" in download.content

    def test_unknown_model(self, client):
        response = client.post(
            "/convert",
            data={"model_name": "ghost"},
            files={"audio": ("voice.wav", b"RIFF", "audio/wav")},
        )

        assert response.status_code == 404
        assert response.json()["error"] == "Not found"

    def test_missing_audio(self, client):
        response = client.post("/convert", data={"model_name": "alice"})

        assert response.status_code == 400

    def test_download_rejects_bad_ids(self, client):
        assert client.get("/convert/download/not-a-conversion-id").status_code == 404
        assert client.get("/convert/download/" + "a" * 32).status_code == 404


class TestModelEndpoints:
    def test_get_and_delete_model(self, client, test_settings):
        test_settings.paths.get_model_path("bob").write_bytes(b"weights")

        assert client.get("/models/bob").json()["name"] == "bob"
        assert client.delete("/models/bob").status_code == 200
        assert client.get("/models/bob").status_code == 404
