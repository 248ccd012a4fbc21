"""Request/response value objects shared by the transport and the orchestrator."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

ALLOWED_METHODS = frozenset({"GET", "POST", "PUT", "DELETE", "PATCH"})


@dataclass
class TransportRequest:
    """One attempt's request, built fresh per attempt.

    Attributes:
        url: Absolute URL
        method: HTTP method
        headers: Final headers (defaults merged with per-request ones)
        body: Serialized body
        timeout: Attempt timeout in seconds
        proxy: Proxy URL for this attempt (``scheme://[user:pass@]host:port``)
    """

    url: str
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[Union[str, bytes]] = None
    timeout: float = 30.0
    proxy: Optional[str] = None


@dataclass
class TransportResponse:
    """What the transport got back, whatever the status code."""

    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""
    duration: float = 0.0
    url: str = ""
    reason: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 400

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "headers": dict(self.headers),
            "body": self.body,
            "duration": self.duration,
            "url": self.url,
            "reason": self.reason,
        }


@dataclass
class RequestResult:
    """Successful outcome of ``Network.request()``.

    Example:
        >>> result = await network.request("/ip")
        >>> result.response.status, result.parsed["origin"]
    """

    response: TransportResponse
    parsed: Any = None
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "response": self.response.to_dict(),
            "parsed": self.parsed,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat(),
        }
