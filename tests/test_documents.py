import pytest

from plutify.models import Notification
from plutify.models_documents import Document


def _upload(api_client, headers, **overrides):
    payload = {
        "fileName": "2024-Return.PDF",
        "fileUrl": "https://files.plutify.test/u/1/2024-return.pdf",
        "fileSize": 2048,
        "mimeType": "application/pdf",
        "category": "tax_returns",
        "taxYear": 2024,
    }
    payload.update(overrides)
    return api_client.post("/api/documents/upload", headers=headers, json=payload)


@pytest.fixture()
def client_document(api_client, client_headers, client_user):
    response = _upload(api_client, client_headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_categories(api_client, client_headers):
    data = api_client.get("/api/documents/categories", headers=client_headers).json()["data"]

    assert len(data) == 17
    assert data[0] == {"value": "tax_returns", "label": "Tax Returns", "description": "Annual tax returns (1040, etc)"}
    assert data[-1]["value"] == "other"


def test_categories_require_login(api_client):
    assert api_client.get("/api/documents/categories").status_code == 401


def test_client_uploads_own_document(api_client, db_session, client_document, client_user):
    assert client_document["userId"] == client_user.id
    assert client_document["category"] == "tax_returns"
    assert client_document["downloadUrl"] == f"/api/documents/{client_document['id']}/download"

    row = db_session.get(Document, client_document["id"])
    assert row.file_type == "pdf"
    assert row.uploaded_by == client_user.id
    assert row.status == "active"


def test_upload_requires_file_and_category(api_client, client_headers):
    no_file = _upload(api_client, client_headers, fileUrl=None)
    assert no_file.status_code == 400
    assert no_file.json()["message"] == "No file uploaded"

    no_category = _upload(api_client, client_headers, category=None)
    assert no_category.status_code == 400
    assert no_category.json()["message"] == "Document category is required"

    bad_category = _upload(api_client, client_headers, category="selfies")
    assert bad_category.status_code == 400
    assert bad_category.json()["message"].startswith("Invalid category")


def test_tax_year_range(api_client, client_headers):
    assert _upload(api_client, client_headers, taxYear=1850).status_code == 422


def test_client_upload_notifies_assigned_staff(api_client, db_session, client_headers, staff_user, assignment):
    _upload(api_client, client_headers)

    notification = db_session.query(Notification).filter_by(recipient_id=staff_user.id).one()
    assert notification.type == "document_uploaded"
    assert notification.data["category"] == "tax_returns"


def test_assigned_staff_uploads_for_client(api_client, db_session, staff_headers, client_user, assignment):
    response = _upload(api_client, staff_headers, clientId=client_user.id, category="bank_statements")

    assert response.status_code == 201
    assert response.json()["data"]["userId"] == client_user.id
    assert db_session.query(Notification).filter_by(recipient_id=client_user.id).count() == 1


def test_unassigned_staff_cannot_upload_for_client(api_client, staff_headers, client_user):
    response = _upload(api_client, staff_headers, clientId=client_user.id)
    assert response.status_code == 403


def test_upload_multiple_reports_partial_failures(api_client, client_headers):
    response = api_client.post(
        "/api/documents/upload-multiple",
        headers=client_headers,
        json={
            "category": "receipts",
            "files": [
                {"fileName": "a.jpg", "fileUrl": "https://files.plutify.test/a.jpg"},
                {"fileName": "b.jpg"},
            ],
        },
    )

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "1 documents uploaded successfully"
    assert [f["fileName"] for f in body["data"]["successful"]] == ["a.jpg"]
    assert body["data"]["failed"][0]["fileName"] == "b.jpg"
    assert body["data"]["total"] == 2


def test_upload_multiple_requires_files(api_client, client_headers):
    response = api_client.post("/api/documents/upload-multiple", headers=client_headers, json={"category": "receipts"})
    assert response.status_code == 400


def test_list_filters_and_paginates(api_client, client_headers):
    _upload(api_client, client_headers, fileName="w2-acme.pdf", category="w2_forms")
    _upload(api_client, client_headers, fileName="w2-globex.pdf", category="w2_forms")
    _upload(api_client, client_headers, fileName="march.pdf", category="bank_statements")

    w2 = api_client.get("/api/documents?category=w2_forms&limit=1", headers=client_headers).json()["data"]
    assert len(w2["documents"]) == 1
    assert w2["pagination"] == {"total": 2, "pages": 2, "currentPage": 1, "perPage": 1}

    found = api_client.get("/api/documents?search=GLOBEX", headers=client_headers).json()["data"]
    assert [d["fileName"] for d in found["documents"]] == ["w2-globex.pdf"]


def test_clients_only_see_their_own_documents(api_client, client_document, other_client, headers_for):
    other_headers = headers_for(other_client)

    assert api_client.get("/api/documents", headers=other_headers).json()["data"]["documents"] == []
    assert api_client.get(f"/api/documents/{client_document['id']}", headers=other_headers).status_code == 403
    by_owner = api_client.get(f"/api/documents?clientId={client_document['userId']}", headers=other_headers)
    assert by_owner.status_code == 403


def test_staff_access_follows_assignment(
    api_client, client_document, staff_headers, admin_headers, staff_user, client_user, assignment
):
    url = f"/api/documents/{client_document['id']}"
    assert api_client.get(url, headers=staff_headers).status_code == 200
    listed = api_client.get(f"/api/documents?clientId={client_user.id}", headers=staff_headers).json()["data"]
    assert [d["id"] for d in listed["documents"]] == [client_document["id"]]

    api_client.delete(f"/api/admin/assign-client/{staff_user.id}/{client_user.id}", headers=admin_headers)

    assert api_client.get(url, headers=staff_headers).status_code == 403
    assert api_client.get(f"/api/documents?clientId={client_user.id}", headers=staff_headers).status_code == 403


def test_admin_reads_any_client(api_client, client_document, admin_headers, client_user):
    response = api_client.get(f"/api/documents/{client_document['id']}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["fileUrl"] == "https://files.plutify.test/u/1/2024-return.pdf"

    missing = api_client.get("/api/documents?clientId=9999", headers=admin_headers)
    assert missing.status_code == 404


def test_download_counts_access(api_client, db_session, client_document, client_headers, client_user):
    response = api_client.get(f"/api/documents/{client_document['id']}/download", headers=client_headers)

    assert response.status_code == 200
    assert response.json()["data"]["fileUrl"] == "https://files.plutify.test/u/1/2024-return.pdf"
    row = db_session.get(Document, client_document["id"])
    db_session.refresh(row)
    assert row.access_count == 1
    assert row.last_accessed_by == client_user.id


def test_update_category_and_archive(api_client, client_document, client_headers):
    url = f"/api/documents/{client_document['id']}"

    response = api_client.patch(url, headers=client_headers, json={"category": "other", "status": "archived"})
    assert response.status_code == 200
    assert response.json()["data"]["category"] == "other"
    assert response.json()["data"]["status"] == "archived"

    assert api_client.patch(url, headers=client_headers, json={"status": "deleted"}).status_code == 400
    assert api_client.patch(url, headers=client_headers, json={"category": "selfies"}).status_code == 400


def test_delete_is_owner_only_and_soft(
    api_client, db_session, client_document, client_headers, staff_headers, assignment
):
    url = f"/api/documents/{client_document['id']}"

    assert api_client.delete(url, headers=staff_headers).status_code == 403

    response = api_client.delete(url, headers=client_headers)
    assert response.status_code == 200
    assert response.json()["message"] == "Document deleted successfully"

    row = db_session.get(Document, client_document["id"])
    db_session.refresh(row)
    assert row.status == "deleted"
    assert row.deleted_at is not None

    assert api_client.get(url, headers=client_headers).status_code == 404
    assert api_client.get("/api/documents", headers=client_headers).json()["data"]["documents"] == []


def test_unknown_document(api_client, client_headers):
    assert api_client.get("/api/documents/4242", headers=client_headers).status_code == 404
