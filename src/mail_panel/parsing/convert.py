"""Build MimePart trees from messages parsed by the standard email package."""

from __future__ import annotations

import email
from email.errors import HeaderParseError
from email.header import decode_header, make_header
from email.message import Message as EmailMessage
from typing import Dict, List

from mail_panel.models import Message, MimePart


def _decode_header_value(value: object) -> str:
    """
    Decode RFC 2047 encoded words into a single Unicode string.
    """
    text = str(value)
    try:
        return str(make_header(decode_header(text)))
    except (HeaderParseError, LookupError, UnicodeDecodeError):
        return text


def _headers_of(em: EmailMessage) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    for name, value in em.items():
        # Repeated headers (Received, ...) keep their first value.
        headers.setdefault(name, _decode_header_value(value))
    return headers


def _raw_payload(em: EmailMessage) -> bytes:
    payload = em.get_payload(decode=False)
    if payload is None:
        return b""
    if isinstance(payload, bytes):
        return payload
    # Bytes parsing keeps 8bit content as surrogate escapes.
    return str(payload).encode("utf-8", "surrogateescape")


def mime_part_from_email(em: EmailMessage) -> MimePart:
    """
    Convert a parsed email tree. Leaf bodies stay transfer-encoded so that
    decoding happens in one place (parser.decode_body).
    """
    if em.is_multipart():
        children = [mime_part_from_email(sub) for sub in em.get_payload()]
        return MimePart(headers=_headers_of(em), body=b"", parts=children)
    return MimePart(headers=_headers_of(em), body=_raw_payload(em))


def _collect_attachments(part: MimePart, out: List[MimePart]) -> None:
    if not part.parts:
        disposition = (part.get_header("Content-Disposition") or "").strip().lower()
        if disposition.startswith("attachment"):
            out.append(part)
        return
    for child in part.parts:
        _collect_attachments(child, out)


def message_from_bytes(raw: bytes, message_id: str) -> Message:
    em = email.message_from_bytes(raw)
    root = mime_part_from_email(em)

    attachments: List[MimePart] = []
    _collect_attachments(root, attachments)

    return Message(
        headers=root.headers,
        body=root.body,
        parts=root.parts,
        id=message_id,
        attachments=attachments,
        source=raw,
    )
