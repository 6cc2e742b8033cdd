from unittest.mock import patch
from antraege.models.antrag import Antrag
from conftest import BLOB_BASE_URL


def attachment(name, content_type="application/pdf"):
    return ("files", (name, b"data", content_type))


def test_create_antrag_with_attachments(client, db_session, storage, sample_antrag_data):
    """Attachments are uploaded and their URLs saved on the Antrag."""
    response = client.post(
        "/antraege",
        data=sample_antrag_data,
        files=[attachment("satzung.pdf"), attachment("logo.png", "image/png")]
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "saved"
    assert data["antragId"] > 0
    assert len(data["fileUrls"]) == 2

    antrag = db_session.query(Antrag).filter(Antrag.id == data["antragId"]).first()
    assert antrag.title == sample_antrag_data["title"]
    assert antrag.file_urls == data["fileUrls"]
    assert antrag.status == "NEW"


def test_create_antrag_without_attachments(client, storage, sample_antrag_data):
    response = client.post("/antraege", data=sample_antrag_data)

    assert response.status_code == 200
    assert response.json()["fileUrls"] == []
    assert storage.put_calls == []


def test_create_antrag_missing_title(client, storage, sample_antrag_data):
    sample_antrag_data["title"] = "   "

    response = client.post("/antraege", data=sample_antrag_data, files=[attachment("a.pdf")])

    assert response.status_code == 400
    assert "title" in response.json()["fieldErrors"]
    assert storage.put_calls == []


def test_create_antrag_invalid_email(client, storage, sample_antrag_data):
    sample_antrag_data["email"] = "keine-adresse"

    response = client.post("/antraege", data=sample_antrag_data)

    assert response.status_code == 400
    assert "email" in response.json()["fieldErrors"]


def test_create_antrag_upload_failure(client, db_session, storage, sample_antrag_data):
    storage.fail_put("-0-", times=100)

    response = client.post("/antraege", data=sample_antrag_data, files=[attachment("a.pdf")])

    assert response.status_code == 500
    assert response.json()["type"] == "FILE_UPLOAD"
    assert db_session.query(Antrag).count() == 0


def test_create_antrag_save_failure_deletes_uploads(client, db_session, storage, sample_antrag_data):
    with patch("antraege.routers.forms.Antrag", side_effect=Exception("database is locked")):
        response = client.post(
            "/antraege",
            data=sample_antrag_data,
            files=[attachment("a.pdf"), attachment("b.pdf")]
        )

    assert response.status_code == 500
    assert response.json()["type"] == "DATABASE"
    assert len(storage.delete_calls) == 1
    assert len(storage.delete_calls[0]) == 2
    assert storage.objects == {}


def test_get_antrag(client, db_session, sample_antrag_data):
    antrag = Antrag(
        title="Titel",
        summary="Text",
        first_name="Erika",
        last_name="Mustermann",
        email="erika.mustermann@linke-ffm.de",
        file_urls=[f"{BLOB_BASE_URL}/antraege/1-0-a.pdf"]
    )
    db_session.add(antrag)
    db_session.commit()
    db_session.refresh(antrag)

    response = client.get(f"/antraege/{antrag.id}")

    assert response.status_code == 200
    data = response.json()
    assert data["title"] == "Titel"
    assert data["file_urls"] == [f"{BLOB_BASE_URL}/antraege/1-0-a.pdf"]


def test_get_antrag_not_found(client, db_session):
    response = client.get("/antraege/999")

    assert response.status_code == 404
    assert "not found" in response.json()["detail"]


def test_delete_antrag_removes_attachments(client, db_session, storage, sample_antrag_data):
    created = client.post("/antraege", data=sample_antrag_data, files=[attachment("a.pdf")]).json()

    response = client.delete(f"/antraege/{created['antragId']}")

    assert response.status_code == 200
    data = response.json()
    assert data["files"] == {"success": True, "deletedUrls": created["fileUrls"]}
    assert storage.objects == {}
    assert db_session.query(Antrag).count() == 0


def test_delete_antrag_keeps_going_when_blob_delete_fails(client, db_session, storage, sample_antrag_data):
    created = client.post("/antraege", data=sample_antrag_data, files=[attachment("a.pdf")]).json()
    storage.delete_failures = 100

    response = client.delete(f"/antraege/{created['antragId']}")

    assert response.status_code == 200
    assert response.json()["files"]["success"] is False
    assert db_session.query(Antrag).count() == 0


def test_create_antrag_keeps_attachments_once_committed(client, db_session, storage, sample_antrag_data, monkeypatch):
    """A failure after the commit must not delete the blobs the saved row points at."""
    from sqlalchemy.orm import Session

    def broken_refresh(self, instance, *args, **kwargs):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(Session, "refresh", broken_refresh)

    response = client.post("/antraege", data=sample_antrag_data, files=[attachment("a.pdf")])

    assert response.status_code == 200
    data = response.json()
    assert storage.delete_calls == []
    assert list(storage.objects) == data["fileUrls"]

    antrag = db_session.query(Antrag).filter(Antrag.id == data["antragId"]).first()
    assert antrag.file_urls == data["fileUrls"]


def test_create_antrag_oversized_attachment_is_not_read(client, db_session, storage, sample_antrag_data, monkeypatch):
    from starlette.datastructures import UploadFile

    reads = []
    original_read = UploadFile.read

    async def counting_read(self, size=-1):
        data = await original_read(self, size)
        reads.append(len(data))
        return data

    monkeypatch.setattr(UploadFile, "read", counting_read)

    response = client.post(
        "/antraege",
        data=sample_antrag_data,
        files=[("files", ("big.pdf", b"x" * (11 * 1024 * 1024), "application/pdf"))]
    )

    assert response.status_code == 400
    assert "big.pdf" in response.json()["fieldErrors"]["files"]
    assert reads == []
    assert storage.put_calls == []
    assert db_session.query(Antrag).count() == 0
