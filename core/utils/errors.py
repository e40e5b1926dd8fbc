"""Custom exceptions for core logic."""

from __future__ import annotations

from typing import Literal

UpstreamSource = Literal["figma", "sheets", "download", "merge"]


class UpstreamFetchError(Exception):
    """Raised when a record, document or page collaborator fails."""

    def __init__(
        self,
        message: str,
        *,
        source: UpstreamSource,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.source = source
        self.status_code = status_code


class ConfigError(ValueError):
    """Raised when a required setting is missing or malformed."""

    def __init__(self, message: str, *, key: str) -> None:
        super().__init__(message)
        self.key = key
