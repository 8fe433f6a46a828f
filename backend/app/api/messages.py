# backend/app/api/messages.py
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse, Response
from pydantic import BaseModel, ConfigDict, Field

from mail_panel.config.settings import PanelSettings, load_settings
from mail_panel.models import Message
from mail_panel.parsing.parser import (
    attachment_label,
    resolve_html_preview,
    resolve_plain_text,
    transfer_decode,
)
from mail_panel.storage.store import FileMailStore

_stores: dict[Path, FileMailStore] = {}


@lru_cache
def get_settings() -> PanelSettings:
    return load_settings()


def get_store(settings: PanelSettings = Depends(get_settings)) -> FileMailStore:
    # One store per directory so its write lock is shared across requests.
    store = _stores.get(settings.storage_dir)
    if store is None:
        store = FileMailStore(settings.storage_dir, retention=settings.retention)
        _stores[settings.storage_dir] = store
    return store


def require_debug(settings: PanelSettings = Depends(get_settings)) -> None:
    if not settings.debug:
        raise HTTPException(status_code=404, detail="Not Found")


router = APIRouter(prefix="/mail-panel", dependencies=[Depends(require_debug)])


class MessageSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    subject: str
    sender: str = Field(alias="from")
    recipients: str = Field(alias="to")
    date: Optional[str] = None
    plain_text: str
    attachments: List[str] = []


class MessageList(BaseModel):
    count: int
    messages: List[MessageSummary]


def _summary(message: Message) -> MessageSummary:
    return MessageSummary(
        id=message.id,
        subject=message.subject,
        sender=message.sender,
        recipients=message.recipients,
        date=message.date,
        plain_text=resolve_plain_text(message),
        attachments=[attachment_label(att) for att in message.attachments],
    )


def _load(store: FileMailStore, message_id: str) -> Message:
    try:
        return store.get_message(message_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown message {message_id}") from exc


def _return_back(request: Request) -> RedirectResponse:
    referer = request.headers.get("referer")
    if referer is None:
        raise HTTPException(
            status_code=400,
            detail="Unable to redirect back because your browser did not send referrer",
        )
    if referer == str(request.url):
        raise HTTPException(
            status_code=400,
            detail="Unable to redirect back because it would create loop",
        )
    return RedirectResponse(referer, status_code=303)


@router.get("/messages")
def list_messages(
    limit: Optional[int] = Query(None, ge=1),
    settings: PanelSettings = Depends(get_settings),
    store: FileMailStore = Depends(get_store),
) -> MessageList:
    messages = store.get_messages(limit or settings.messages_limit)
    return MessageList(
        count=store.get_message_count(),
        messages=[_summary(m) for m in messages],
    )


@router.get("/messages/{message_id}", response_class=HTMLResponse)
def message_detail(message_id: str, store: FileMailStore = Depends(get_store)) -> HTMLResponse:
    return HTMLResponse(resolve_html_preview(_load(store, message_id)))


@router.get("/messages/{message_id}/plain", response_class=PlainTextResponse)
def message_plain(message_id: str, store: FileMailStore = Depends(get_store)) -> PlainTextResponse:
    return PlainTextResponse(resolve_plain_text(_load(store, message_id)))


@router.get("/messages/{message_id}/source")
def message_source(message_id: str, store: FileMailStore = Depends(get_store)) -> Response:
    return Response(content=_load(store, message_id).source, media_type="text/plain")


@router.get("/messages/{message_id}/attachments/{index}")
def message_attachment(
    message_id: str, index: int, store: FileMailStore = Depends(get_store)
) -> Response:
    attachments = _load(store, message_id).attachments
    if index < 0 or index >= len(attachments):
        raise HTTPException(status_code=404, detail=f"Unknown attachment {index}")

    attachment = attachments[index]
    content_type = attachment.get_header("Content-Type")
    if not content_type:
        raise HTTPException(status_code=404, detail="Attachment has no content type")

    # Original bytes: transfer encoding undone, no charset handling.
    return Response(content=transfer_decode(attachment), headers={"Content-Type": content_type})


@router.post("/messages/delete")
def delete_all_messages(request: Request, store: FileMailStore = Depends(get_store)) -> RedirectResponse:
    store.delete_all()
    return _return_back(request)


@router.post("/messages/{message_id}/delete")
def delete_message(
    message_id: str, request: Request, store: FileMailStore = Depends(get_store)
) -> RedirectResponse:
    store.delete_one(message_id)
    return _return_back(request)
