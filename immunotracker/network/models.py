"""Request and response models passed between the router, cache and transport."""

import json
from datetime import datetime
from typing import Any, Dict, Optional
from urllib.parse import urldefrag, urlsplit

from pydantic import BaseModel, Field

STATIC_DESTINATIONS = frozenset({"style", "script", "image"})


class FetchRequest(BaseModel):
    """An outgoing request as seen by the fetch router."""

    url: str
    method: str = "GET"
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[bytes] = None
    destination: str = Field(
        default="", description="Resource kind: document, style, script, image or empty"
    )
    mode: str = Field(default="cors", description="Request mode; 'navigate' for page loads")

    @property
    def cache_key(self) -> str:
        """URL without fragment, used as the cache tier key."""
        return urldefrag(self.url)[0]

    @property
    def path(self) -> str:
        return urlsplit(self.url).path or "/"

    @property
    def is_read(self) -> bool:
        return self.method.upper() in ("GET", "HEAD")

    def json_body(self) -> Any:
        """Decode the body as JSON, or None when there is no body."""
        if not self.body:
            return None
        return json.loads(self.body)

    @classmethod
    def json_post(
        cls, url: str, data: Any, headers: Optional[Dict[str, str]] = None, method: str = "POST"
    ) -> "FetchRequest":
        merged = {"Content-Type": "application/json"}
        merged.update(headers or {})
        return cls(
            url=url, method=method, headers=merged, body=json.dumps(data).encode("utf-8")
        )


class FetchResponse(BaseModel):
    """A response from the network, a cache tier or synthesized locally."""

    url: str = ""
    status: int = 200
    headers: Dict[str, str] = Field(default_factory=dict)
    body: bytes = b""
    from_cache: bool = False
    cached_at: Optional[datetime] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json_body(self) -> Any:
        return json.loads(self.body)

    @classmethod
    def json_response(
        cls, data: Any, status: int = 200, url: str = "", headers: Optional[Dict[str, str]] = None
    ) -> "FetchResponse":
        merged = {"Content-Type": "application/json"}
        merged.update(headers or {})
        return cls(url=url, status=status, headers=merged, body=json.dumps(data).encode("utf-8"))
