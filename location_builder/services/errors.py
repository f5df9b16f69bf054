from __future__ import annotations


class LocationSearchError(RuntimeError):
    """Base class for county radius search failures."""


class InvalidInputError(LocationSearchError):
    """Postal code is malformed. Raised before any query is issued."""


class NotFoundError(LocationSearchError):
    """Postal code is well-formed but absent from the location dataset."""


class SearchFailedError(LocationSearchError):
    def __init__(self, stage: str, message: str):
        super().__init__(f"[{stage}] {message}")
        self.stage = stage
        self.message = message


class NoPriorSearchError(LocationSearchError):
    """Filters were applied before any search completed successfully."""

    def __init__(self, message: str = "Perform a search first."):
        super().__init__(message)
