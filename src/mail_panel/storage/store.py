from __future__ import annotations

import json
import logging
import os
import uuid
from email.message import Message as EmailMessage
from pathlib import Path
from threading import Lock
from typing import List, Union

from mail_panel.config.settings import DEFAULT_RETENTION
from mail_panel.models import Message
from mail_panel.parsing.convert import message_from_bytes

log = logging.getLogger(__name__)

INDEX_FILE = "index.json"


class FileMailStore:
    """
    Captures outgoing messages as .eml files instead of sending them.
    The index keeps ids in capture order, oldest first.
    """

    def __init__(self, directory: Path, retention: int = DEFAULT_RETENTION) -> None:
        self._dir = Path(directory)
        self._retention = retention
        self._lock = Lock()

    # --- index ---

    def _index_path(self) -> Path:
        return self._dir / INDEX_FILE

    def _eml_path(self, message_id: str) -> Path:
        return self._dir / f"{message_id}.eml"

    def _load_ids(self) -> List[str]:
        path = self._index_path()
        if not path.exists():
            return []
        data = json.loads(path.read_text(encoding="utf-8"))
        # Keep load resilient to files removed behind our back.
        return [str(mid) for mid in (data.get("ids") or []) if self._eml_path(str(mid)).exists()]

    def _save_ids(self, ids: List[str]) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        # Replace atomically so readers never see a half-written index.
        tmp_path = self._index_path().with_suffix(".tmp")
        tmp_path.write_text(json.dumps({"ids": ids}, indent=2), encoding="utf-8")
        os.replace(tmp_path, self._index_path())

    # --- mailer API ---

    def send(self, message: Union[EmailMessage, bytes]) -> str:
        raw = message if isinstance(message, bytes) else message.as_bytes()
        message_id = uuid.uuid4().hex

        with self._lock:
            self._dir.mkdir(parents=True, exist_ok=True)
            self._eml_path(message_id).write_bytes(raw)
            ids = self._load_ids()
            ids.append(message_id)

            overflow = len(ids) - self._retention
            if overflow > 0:
                evicted, ids = ids[:overflow], ids[overflow:]
                for old_id in evicted:
                    self._eml_path(old_id).unlink(missing_ok=True)
                log.info("Evicted %d message(s) beyond retention of %d", len(evicted), self._retention)

            self._save_ids(ids)
        return message_id

    def _read(self, message_id: str) -> Message:
        try:
            raw = self._eml_path(message_id).read_bytes()
        except FileNotFoundError as exc:
            # Deleted between the index check and the read.
            raise KeyError(f"Message {message_id!r} not found") from exc
        return message_from_bytes(raw, message_id)

    def get_message(self, message_id: str) -> Message:
        if message_id not in self._load_ids():
            raise KeyError(f"Message {message_id!r} not found")
        return self._read(message_id)

    def get_messages(self, limit: int) -> List[Message]:
        # Newest first.
        messages: List[Message] = []
        for mid in list(reversed(self._load_ids()))[: max(0, limit)]:
            try:
                messages.append(self._read(mid))
            except KeyError:
                continue
        return messages

    def get_message_count(self) -> int:
        return len(self._load_ids())

    def delete_one(self, message_id: str) -> None:
        with self._lock:
            ids = self._load_ids()
            if message_id not in ids:
                return
            ids.remove(message_id)
            self._eml_path(message_id).unlink(missing_ok=True)
            self._save_ids(ids)
        log.info("Deleted message %s", message_id)

    def delete_all(self) -> None:
        with self._lock:
            ids = self._load_ids()
            for message_id in ids:
                self._eml_path(message_id).unlink(missing_ok=True)
            self._save_ids([])
        log.info("Deleted all %d message(s)", len(ids))
