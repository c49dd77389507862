from pathlib import Path


def test_upload_and_list_documents(client, settings, make_user, make_group):
    user_id, headers = make_user(name="Uploader")
    gid = make_group(headers)
    files = {"file": ("test.pdf", b"%PDF-1.4 test content", "application/pdf")}

    r = client.post(f"/documents/{gid}/upload", files=files, headers=headers)
    assert r.status_code == 200
    body = r.json()
    assert body["message"] == "Document uploaded successfully"
    assert body["document"]["group_id"] == gid
    assert body["document"]["file_size"] == len(b"%PDF-1.4 test content")

    stored = list(Path(settings.UPLOAD_DIR).iterdir())
    assert len(stored) == 1
    assert stored[0].name.endswith("_test.pdf")

    listing = client.get(f"/documents/{gid}/documents", headers=headers)
    assert listing.status_code == 200
    docs = listing.json()
    assert len(docs) == 1
    assert docs[0]["file_name"] == "test.pdf"
    assert docs[0]["file_type"] == "application/pdf"
    assert docs[0]["uploader"] == {"id": user_id, "name": "Uploader"}


def test_documents_require_membership(client, make_user, make_group):
    _, owner_h = make_user()
    _, outsider_h = make_user()
    gid = make_group(owner_h)
    files = {"file": ("notes.txt", b"hello", "text/plain")}

    up = client.post(f"/documents/{gid}/upload", files=files, headers=outsider_h)
    assert up.status_code == 403
    assert up.json()["detail"] == "You must be a member of this group to upload documents"

    ls = client.get(f"/documents/{gid}/documents", headers=outsider_h)
    assert ls.status_code == 403
    assert ls.json()["detail"] == "You must be a member of this group to view documents"


def test_documents_for_missing_group(client, make_user):
    _, headers = make_user()
    files = {"file": ("notes.txt", b"hello", "text/plain")}
    up = client.post("/documents/555/upload", files=files, headers=headers)
    assert up.status_code == 404
    assert up.json()["detail"] == "Group not found"
    assert client.get("/documents/555/documents", headers=headers).status_code == 404


def test_upload_rejects_oversized_file(client, settings, make_user, make_group):
    _, headers = make_user()
    gid = make_group(headers)
    files = {"file": ("big.bin", b"x" * (settings.MAX_UPLOAD_BYTES + 1), "application/octet-stream")}
    r = client.post(f"/documents/{gid}/upload", files=files, headers=headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "file too large"
    assert client.get(f"/documents/{gid}/documents", headers=headers).json() == []


def test_empty_document_list(client, make_user, make_group):
    _, headers = make_user()
    gid = make_group(headers)
    r = client.get(f"/documents/{gid}/documents", headers=headers)
    assert r.status_code == 200
    assert r.json() == []
