from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class MimePart:
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    parts: List["MimePart"] = field(default_factory=list)

    def __post_init__(self) -> None:
        # Accept text bodies for convenience; the tree always holds bytes.
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")

    def get_header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup, first occurrence wins."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


@dataclass
class Message(MimePart):
    id: str = ""
    html_body: str = ""
    attachments: List[MimePart] = field(default_factory=list)
    # Encoded wire form as captured by the store.
    source: bytes = b""

    @property
    def subject(self) -> str:
        return self.get_header("Subject") or ""

    @property
    def sender(self) -> str:
        return self.get_header("From") or ""

    @property
    def recipients(self) -> str:
        return self.get_header("To") or ""

    @property
    def date(self) -> Optional[str]:
        return self.get_header("Date")
