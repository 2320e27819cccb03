"""
Progress tracking for purchase runs.

`ProgressLog` is the step-by-step log returned with a bulk purchase response.
`PurchaseSessionStore` keeps background purchases in process memory so the
dashboard can poll them by session id; nothing is persisted.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, List

PROGRESS_STATUSES = ("pending", "in_progress", "completed", "error")
SESSION_KINDS = ("manual", "bulk", "ai")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ProgressLog:
    """Ordered list of {step, status, message, timestamp} entries"""

    def __init__(self, on_entry=None):
        self.entries: List[Dict[str, str]] = []
        self._on_entry = on_entry

    def add(self, step: str, status: str, message: str) -> Dict[str, str]:
        if status not in PROGRESS_STATUSES:
            raise ValueError(f"Invalid progress status: {status}")
        entry = {
            "step": step,
            "status": status,
            "message": message,
            "timestamp": _now().isoformat(),
        }
        self.entries.append(entry)
        if self._on_entry:
            self._on_entry(entry)
        return entry

    def errors(self) -> List[Dict[str, str]]:
        return [e for e in self.entries if e["status"] == "error"]

    def to_list(self) -> List[Dict[str, str]]:
        return list(self.entries)


@dataclass
class PurchaseSession:
    session_id: str
    kind: str
    user_id: str
    step: str = "pending"
    status: str = "pending"
    message: str = ""
    history: List[Dict[str, str]] = field(default_factory=list)
    result: Optional[Dict[str, Any]] = None
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    @property
    def finished(self) -> bool:
        return self.status in ("completed", "error")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "kind": self.kind,
            "user_id": self.user_id,
            "progress": {
                "step": self.step,
                "status": self.status,
                "message": self.message,
                "history": list(self.history),
            },
            "result": self.result,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class SessionNotFoundError(Exception):
    """Raised when a session id is unknown or expired"""
    pass


class PurchaseSessionStore:
    """In-memory registry of purchase sessions with time-based expiry"""

    def __init__(self, ttl_minutes: Optional[int] = None):
        from .. import config

        if ttl_minutes is None:
            ttl_minutes = config.PURCHASE_SESSION_TTL_MINUTES
        self.ttl = timedelta(minutes=ttl_minutes)
        self._sessions: Dict[str, PurchaseSession] = {}

    def create(self, kind: str, user_id: str) -> PurchaseSession:
        if kind not in SESSION_KINDS:
            raise ValueError(f"Invalid session kind: {kind}")
        self.prune()
        session = PurchaseSession(session_id=str(uuid.uuid4()), kind=kind, user_id=user_id)
        self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> PurchaseSession:
        self.prune()
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Purchase session {session_id} not found")
        return session

    def update(
        self,
        session_id: str,
        step: str,
        status: str,
        message: str,
        result: Optional[Dict[str, Any]] = None,
    ) -> PurchaseSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Purchase session {session_id} not found")
        if status not in PROGRESS_STATUSES:
            raise ValueError(f"Invalid progress status: {status}")

        session.step = step
        session.status = status
        session.message = message
        session.updated_at = _now()
        session.history.append({
            "step": step,
            "status": status,
            "message": message,
            "timestamp": session.updated_at.isoformat(),
        })
        if result is not None:
            session.result = result
        return session

    def prune(self, now: Optional[datetime] = None) -> int:
        """Drop finished sessions older than the TTL. Returns the number removed."""
        cutoff = (now or _now()) - self.ttl
        expired = [
            sid for sid, s in list(self._sessions.items())
            if s.finished and s.updated_at < cutoff
        ]
        for sid in expired:
            del self._sessions[sid]
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)
