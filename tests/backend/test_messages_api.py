from __future__ import annotations

from email.message import EmailMessage
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from backend.app.api.messages import get_settings
from backend.app.main import app
from mail_panel.config.settings import PanelSettings
from mail_panel.storage.store import FileMailStore

PDF_BYTES = b"%PDF-1.4\x00\xff binary"


def _mail() -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = "Invoice"
    msg["From"] = "billing@example.com"
    msg["To"] = "you@example.com"
    msg.set_content("Total: 5 < 10 & done")
    msg.add_attachment(PDF_BYTES, maintype="application", subtype="pdf", filename="invoice.pdf")
    return msg


@pytest.fixture
def settings(tmp_path: Path) -> PanelSettings:
    return PanelSettings(storage_dir=tmp_path, messages_limit=20, retention=10, debug=True)


@pytest.fixture
def client(settings: PanelSettings):
    app.dependency_overrides[get_settings] = lambda: settings
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def message_id(settings: PanelSettings) -> str:
    return FileMailStore(settings.storage_dir).send(_mail())


def test_list_messages(client: TestClient, message_id: str) -> None:
    resp = client.get("/api/mail-panel/messages")

    assert resp.status_code == 200
    payload = resp.json()
    assert payload["count"] == 1
    summary = payload["messages"][0]
    assert summary["id"] == message_id
    assert summary["subject"] == "Invoice"
    assert summary["from"] == "billing@example.com"
    assert summary["to"] == "you@example.com"
    assert "sender" not in summary
    assert summary["plain_text"].strip() == "Total: 5 < 10 & done"
    assert summary["attachments"] == ["invoice.pdf (application/pdf)"]


def test_detail_wraps_plain_text_preview(client: TestClient, message_id: str) -> None:
    resp = client.get(f"/api/mail-panel/messages/{message_id}")

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/html")
    assert "Total: 5 &lt; 10 &amp; done" in resp.text
    assert resp.text.startswith("<!doctype html>")


def test_plain_and_source(client: TestClient, message_id: str) -> None:
    plain = client.get(f"/api/mail-panel/messages/{message_id}/plain")
    source = client.get(f"/api/mail-panel/messages/{message_id}/source")

    assert plain.text.strip() == "Total: 5 < 10 & done"
    assert source.headers["content-type"].startswith("text/plain")
    assert "Subject: Invoice" in source.text


def test_attachment_is_served_as_original_bytes(client: TestClient, message_id: str) -> None:
    resp = client.get(f"/api/mail-panel/messages/{message_id}/attachments/0")

    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/pdf"
    assert resp.content == PDF_BYTES


def test_list_messages_decodes_encoded_headers(client: TestClient, settings: PanelSettings) -> None:
    msg = EmailMessage()
    msg["Subject"] = "Grüße aus Köln"
    msg["From"] = "Jörg Müller <joerg@example.com>"
    msg["To"] = "you@example.com"
    msg.set_content("Hallo")
    FileMailStore(settings.storage_dir).send(msg)

    summary = client.get("/api/mail-panel/messages").json()["messages"][0]

    assert summary["subject"] == "Grüße aus Köln"
    assert summary["from"] == "Jörg Müller <joerg@example.com>"


def test_unknown_attachment_or_message_is_404(client: TestClient, message_id: str) -> None:
    assert client.get(f"/api/mail-panel/messages/{message_id}/attachments/3").status_code == 404
    assert client.get(f"/api/mail-panel/messages/{message_id}/attachments/-1").status_code == 404
    assert client.get("/api/mail-panel/messages/nope").status_code == 404


def test_delete_one_redirects_back(client: TestClient, message_id: str, settings: PanelSettings) -> None:
    resp = client.post(
        f"/api/mail-panel/messages/{message_id}/delete",
        headers={"referer": "http://testserver/app"},
        follow_redirects=False,
    )

    assert resp.status_code == 303
    assert resp.headers["location"] == "http://testserver/app"
    assert FileMailStore(settings.storage_dir).get_message_count() == 0


def test_delete_all_without_referer_is_400(client: TestClient, message_id: str) -> None:
    resp = client.post("/api/mail-panel/messages/delete", follow_redirects=False)

    assert resp.status_code == 400


def test_delete_all_refuses_redirect_loop(client: TestClient, message_id: str) -> None:
    url = "http://testserver/api/mail-panel/messages/delete"
    resp = client.post(url, headers={"referer": url}, follow_redirects=False)

    assert resp.status_code == 400


def test_routes_hidden_outside_debug(tmp_path: Path) -> None:
    app.dependency_overrides[get_settings] = lambda: PanelSettings(storage_dir=tmp_path, debug=False)
    try:
        resp = TestClient(app).get("/api/mail-panel/messages")
    finally:
        app.dependency_overrides.clear()

    assert resp.status_code == 404
