"""
X-ray uploads and AI prediction records.
"""
import asyncio
import io
import json
import os

import pytest
from PIL import Image
from sqlalchemy.exc import SQLAlchemyError

from conftest import API, audit_entries
from kneecare.core.exceptions import ValidationError
from kneecare.models.user import User
from kneecare.models.xray import XRayImage
from kneecare.services.xray_service import XRayService
from kneecare.utils.file_utils import read_upload


@pytest.fixture
def png_bytes():
    buffer = io.BytesIO()
    Image.new("L", (64, 48), color=128).save(buffer, format="PNG")
    return buffer.getvalue()


def _upload(client, headers, content, filename="knee.png", content_type="image/png", **form):
    return client.post(
        f"{API}/xrays/upload",
        files={"file": (filename, content, content_type)},
        data=form,
        headers=headers,
    )


def test_upload_stores_file_and_dimensions(client, app, settings, patient, png_bytes):
    patient_user, headers = patient
    metadata = json.dumps({"position": "AP", "technique": {"kvp": 70}})

    response = _upload(client, headers, png_bytes, metadata=metadata)

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["user_id"] == patient_user["id"]
    assert (body["width"], body["height"]) == (64, 48)
    assert body["processing_status"] == "pending"
    assert body["image_metadata"]["position"] == "AP"
    assert os.path.exists(os.path.join(settings.UPLOAD_DIR, os.path.basename(body["image_url"])))
    assert len(audit_entries(app, action="xray_uploaded")) == 1


def test_non_image_is_rejected(client, patient):
    _, headers = patient
    response = _upload(client, headers, b"%PDF-1.4 not an image", filename="scan.png")
    assert response.status_code == 400

    response = _upload(client, headers, b"plain text", filename="notes.txt", content_type="text/plain")
    assert response.status_code == 400
    assert response.json()["message"] == "Only image files are allowed"


def test_invalid_metadata_reports_fields(client, patient, png_bytes):
    _, headers = patient
    response = _upload(client, headers, png_bytes, metadata=json.dumps({"position": "sideways"}))
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "position"


def test_delete_removes_file(client, settings, patient, png_bytes):
    _, headers = patient
    body = _upload(client, headers, png_bytes).json()
    path = os.path.join(settings.UPLOAD_DIR, os.path.basename(body["image_url"]))

    assert client.delete(f"{API}/xrays/{body['id']}", headers=headers).status_code == 200
    assert not os.path.exists(path)
    assert client.get(f"{API}/xrays/{body['id']}", headers=headers).status_code == 404


def test_doctor_uploads_for_patient_and_records_prediction(client, doctor, patient, relationship, png_bytes):
    _, doctor_headers = doctor
    patient_user, patient_headers = patient

    image = _upload(client, doctor_headers, png_bytes, user_id=str(patient_user["id"])).json()
    assert image["user_id"] == patient_user["id"]

    prediction = client.post(f"{API}/predictions/", json={
        "xray_image_id": image["id"], "oa_status": "OA", "kl_grade": 3, "confidence": 0.87,
    }, headers=doctor_headers)
    assert prediction.status_code == 201
    assert prediction.json()["severity_description"] == "Severe"
    assert prediction.json()["user_id"] == patient_user["id"]

    refreshed = client.get(f"{API}/xrays/{image['id']}", headers=patient_headers).json()
    assert refreshed["is_processed"] is True
    assert refreshed["processing_status"] == "completed"

    stats = client.get(f"{API}/predictions/stats", headers=patient_headers).json()
    assert stats["total"] == 1
    assert stats["latest_kl_grade"] == 3

    reviewed = client.put(
        f"{API}/predictions/{prediction.json()['id']}", json={"review_notes": "Agree"}, headers=doctor_headers
    )
    assert reviewed.json()["reviewed_by"] is not None


def test_patient_cannot_create_prediction(client, patient, png_bytes):
    _, headers = patient
    image = _upload(client, headers, png_bytes).json()
    response = client.post(f"{API}/predictions/", json={
        "xray_image_id": image["id"], "oa_status": "No_OA", "kl_grade": 0, "confidence": 0.9,
    }, headers=headers)
    assert response.status_code == 403


def test_predictions_hidden_without_permission(client, doctor, patient, relationship, png_bytes):
    _, doctor_headers = doctor
    patient_user, patient_headers = patient
    _upload(client, patient_headers, png_bytes)
    client.put(
        f"{API}/relationships/{relationship['id']}",
        json={"permissions": {"view_predictions": False}},
        headers=doctor_headers,
    )

    assert client.get(f"{API}/xrays/user/{patient_user['id']}", headers=doctor_headers).status_code == 403
    assert client.get(f"{API}/predictions/user/{patient_user['id']}", headers=doctor_headers).status_code == 403


def test_oversize_upload_is_rejected(client, app, settings, patient):
    _, headers = patient
    settings.MAX_UPLOAD_SIZE = 256

    response = _upload(client, headers, b"\x89PNG" + b"0" * 1024)

    assert response.status_code == 400
    assert response.json()["message"] == "File too large. Maximum size is 256.0 B"
    assert not os.path.isdir(settings.UPLOAD_DIR) or os.listdir(settings.UPLOAD_DIR) == []
    assert audit_entries(app, action="xray_uploaded") == []


class ChunkedUpload:
    """Stands in for ``UploadFile`` and records how much was read."""

    def __init__(self, content):
        self.stream = io.BytesIO(content)
        self.consumed = 0

    async def read(self, size=-1):
        chunk = self.stream.read(size)
        self.consumed += len(chunk)
        return chunk


def test_read_upload_stops_past_the_limit():
    upload = ChunkedUpload(b"x" * 10_000)
    with pytest.raises(ValidationError) as excinfo:
        asyncio.run(read_upload(upload, max_size=1000, chunk_size=256))
    assert excinfo.value.message.startswith("File too large")
    assert upload.consumed == 1001


def test_read_upload_returns_whole_file_within_limit():
    upload = ChunkedUpload(b"y" * 700)
    assert asyncio.run(read_upload(upload, max_size=1000, chunk_size=256)) == b"y" * 700


class RecordingStorage:
    def __init__(self):
        self.saved = []
        self.deleted = []

    def save_file(self, content, filename, content_type):
        url = f"/uploads/stored-{len(self.saved)}.png"
        self.saved.append(url)
        return url

    def delete_file(self, url):
        self.deleted.append(url)
        return True


def test_failed_commit_discards_stored_file(client, app, patient, png_bytes, monkeypatch):
    patient_user, _ = patient
    storage = RecordingStorage()

    def broken_commit():
        raise SQLAlchemyError("database is locked")

    with app.state.session_factory() as db:
        actor = db.get(User, patient_user["id"])
        monkeypatch.setattr(db, "commit", broken_commit)
        with pytest.raises(SQLAlchemyError):
            XRayService(db, storage).upload(actor, png_bytes, "knee.png", "image/png", 1024 * 1024)

    assert storage.saved == ["/uploads/stored-0.png"]
    assert storage.deleted == storage.saved
    with app.state.session_factory() as db:
        assert db.query(XRayImage).count() == 0
