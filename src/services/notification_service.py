"""Application lifecycle notifications.

Events are written to the log. Listeners can be registered to forward them
elsewhere (email, websockets); a listener that raises is logged and ignored.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Listener = Callable[[Dict[str, Any]], None]


class NotificationService:
    """Emits started / completed / failed events for applications."""

    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def application_started(self, user_id: str, job_title: str, company: str) -> Dict[str, Any]:
        return self._emit("application_started", user_id=user_id, job_title=job_title, company=company)

    def application_completed(
        self,
        user_id: str,
        job_title: str,
        company: str,
        confirmation_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self._emit(
            "application_completed",
            user_id=user_id,
            job_title=job_title,
            company=company,
            confirmation_url=confirmation_url,
        )

    def application_failed(
        self,
        user_id: str,
        job_title: str,
        company: str,
        error: str,
        *,
        final: bool = False,
    ) -> Dict[str, Any]:
        return self._emit(
            "application_failed",
            user_id=user_id,
            job_title=job_title,
            company=company,
            error=error,
            final=final,
        )

    def _emit(self, event: str, **payload: Any) -> Dict[str, Any]:
        message = {
            "event": event,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "channel": "log",
            **payload,
        }
        level = logging.WARNING if event == "application_failed" else logging.INFO
        logger.log(
            level,
            "[NOTIFICATION] %s user=%s position=%s company=%s%s",
            event,
            payload.get("user_id"),
            payload.get("job_title") or "unknown",
            payload.get("company") or "unknown",
            f" error={payload['error']}" if payload.get("error") else "",
        )
        for listener in self._listeners:
            try:
                listener(message)
            except Exception as error:
                logger.error("Notification listener failed for %s: %s", event, error)
        return message
