from __future__ import annotations

import base64
import binascii
import html
import logging
import quopri
import re
from collections import deque
from typing import List, Optional

from mail_panel.models import Message, MimePart

log = logging.getLogger(__name__)

ENCODING_QUOTED_PRINTABLE = "quoted-printable"
ENCODING_BASE64 = "base64"

_PREVIEW_STYLE = (
    "html,body{margin:0;padding:0;border:none;font-family:sans-serif;"
    "font-size:12px;white-space:pre;}body{padding:10px;}"
)


def get_child_parts(part: MimePart) -> List[MimePart]:
    return list(part.parts or [])


def find_body_by_content_type(root: MimePart, content_type_prefix: str) -> Optional[str]:
    """
    Breadth-first search for the first part whose Content-Type starts with
    the given prefix (case-insensitive). Shallower parts win over deeper ones.
    Returns the decoded body, or None when no part matches.
    """
    prefix = content_type_prefix.lower()
    queue = deque([root])
    while queue:
        current = queue.popleft()
        content_type = current.get_header("Content-Type")
        if content_type is not None and content_type.lower().startswith(prefix):
            return decode_body(current)
        queue.extend(get_child_parts(current))
    return None


def resolve_plain_text(part: MimePart) -> str:
    """
    Plain text for previews. Falls back to the part's own decoded body so
    there is always something to show.
    """
    plain_text = find_body_by_content_type(part, "text/plain")
    if plain_text is not None:
        return plain_text
    return decode_body(part)


def extract_html_body(part: MimePart) -> str:
    if isinstance(part, Message) and part.html_body:
        return part.html_body
    return find_body_by_content_type(part, "text/html") or ""


def resolve_html_preview(part: MimePart) -> str:
    """
    Full HTML document for the preview pane. Messages without an HTML body
    get their plain text escaped into a minimal preformatted page.
    """
    html_body = extract_html_body(part)
    if html_body:
        return html_body

    plain_text = resolve_plain_text(part)
    return (
        "<!doctype html>"
        '<meta charset="utf-8">'
        f"<style>{_PREVIEW_STYLE}</style>"
        f"<body>{html.escape(plain_text, quote=True)}</body>"
    )


def transfer_decode(part: MimePart) -> bytes:
    """
    Undo the part's Content-Transfer-Encoding and return the original bytes.
    Bodies that fail to decode are returned as they are.
    """
    body = part.body or b""
    transfer_encoding = (part.get_header("Content-Transfer-Encoding") or "").strip().lower()

    if transfer_encoding == ENCODING_QUOTED_PRINTABLE:
        return quopri.decodestring(body)

    if transfer_encoding == ENCODING_BASE64:
        # Line folding is allowed, anything else outside the alphabet is not.
        compact = re.sub(rb"\s+", b"", body)
        try:
            return base64.b64decode(compact, validate=True)
        except (binascii.Error, ValueError) as exc:
            log.debug("Invalid base64 body, keeping it undecoded: %s", exc)
            return body

    return body


def decode_body(part: MimePart) -> str:
    return _decode_to_text(transfer_decode(part), _charset_of(part))


def attachment_label(part: MimePart) -> str:
    content_disposition = part.get_header("Content-Disposition") or ""
    content_type = part.get_header("Content-Type") or ""
    match = re.search(r'filename="(.+?)"', content_disposition)
    return (f"{match.group(1)} " if match else "") + f"({content_type})"


# ------------------ utilities ------------------

def _charset_of(part: MimePart) -> Optional[str]:
    content_type = part.get_header("Content-Type")
    if not content_type:
        return None
    m = re.search(r'charset="?([A-Za-z0-9_\-:.]+)"?', content_type, flags=re.I)
    return m.group(1) if m else None


def _decode_to_text(b: bytes, charset: Optional[str]) -> str:
    """
    Decode bytes into text with a safe fallback order.
    """
    for enc in ([charset] if charset else []) + ["utf-8", "latin-1"]:
        try:
            return b.decode(enc)
        except (LookupError, UnicodeDecodeError):
            continue
    return b.decode("utf-8", "replace")
