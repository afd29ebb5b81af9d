"""
Exceptions raised by the Pantry Pal workflow.

The web layer maps these onto HTTP status codes; the CLI prints them.
"""

from typing import Optional


class PantryPalError(Exception):
    """Base class for all Pantry Pal errors."""


class ConfigurationError(PantryPalError):
    """Required configuration (e.g. an API key) is missing."""


class InvalidInputError(PantryPalError):
    """User input was rejected; the previous state is left unchanged."""


class RecipeFetchError(PantryPalError):
    """The external recipe API could not be reached or returned non-2xx."""

    def __init__(self, message: str, endpoint: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is not None:
            return f"{base} (HTTP {self.status_code} from {self.endpoint})"
        if self.endpoint:
            return f"{base} ({self.endpoint})"
        return base
