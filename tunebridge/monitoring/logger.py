"""Structured logging for provider calls and migrations."""

import json
import logging
from typing import Optional


class StructuredLogger:
    """Structured logger with uniform schema."""

    def __init__(self, name: str = "tunebridge", level: str = "INFO"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter('%(message)s'))
            self.logger.addHandler(handler)

    def log(self, event: str, level: int = logging.INFO, **kwargs) -> None:
        """
        Log structured event.

        Standard keys: event, provider, playlist_id, page, batch_size,
                      cb_state, from_state, to_state, reason, elapsed_ms
        """
        log_data = {"event": event, **kwargs}
        self.logger.log(level, json.dumps(log_data, default=str))

    def circuit_breaker_transition(self, provider: str, from_state: str, to_state: str, reason: str) -> None:
        self.log(
            "circuit_breaker",
            level=logging.WARNING,
            provider=provider,
            from_state=from_state,
            to_state=to_state,
            cb_state=to_state,
            reason=reason,
        )

    def request_error(self, provider: str, method: str, path: str, status: Optional[int], error: str) -> None:
        self.log("request_error", level=logging.WARNING, provider=provider, method=method, path=path, status=status, error=error)

    def retry_scheduled(self, attempt: int, delay_ms: float, error: str) -> None:
        self.log("retry_scheduled", attempt=attempt, delay_ms=delay_ms, error=error)

    def page_fetched(self, provider: str, playlist_id: str, page: int, items: int) -> None:
        self.log("page_fetched", level=logging.DEBUG, provider=provider, playlist_id=playlist_id, page=page, items=items)

    def pagination_guard(self, provider: str, playlist_id: str, iterations: int) -> None:
        self.log("pagination_guard", level=logging.WARNING, provider=provider, playlist_id=playlist_id, iterations=iterations)

    def search_cache_hit(self, provider: str, key: str) -> None:
        self.log("search_cache_hit", level=logging.DEBUG, provider=provider, key=key)

    def track_skipped(self, provider: str, position: int, title: str) -> None:
        self.log("track_skipped", provider=provider, position=position, title=title)

    def batch_inserted(self, provider: str, playlist_id: str, batch_size: int, elapsed_ms: float) -> None:
        self.log("batch_inserted", provider=provider, playlist_id=playlist_id, batch_size=batch_size, elapsed_ms=elapsed_ms)
