"""
Error types surfaced by the drafting pipeline and the HTTP layer.
"""

from typing import Dict, Optional


class DemandDrafterError(Exception):
    """Base error with a JSON-friendly shape."""

    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> Dict[str, str]:
        payload = {'error': self.message}
        if self.details:
            payload['details'] = self.details
        return payload


class InputError(DemandDrafterError):
    """The request cannot be processed as submitted."""

    status_code = 400


class ConfigurationError(DemandDrafterError):
    """The service is missing required configuration."""

    status_code = 500


class ModelCallError(DemandDrafterError):
    """The generative model call failed after every retry."""

    def __init__(self, message: str, attempts: int = 0, details: Optional[str] = None):
        super().__init__(message, details=details)
        self.attempts = attempts


class ResponseParseError(DemandDrafterError):
    """The model answered with something that is not a JSON object."""

    def __init__(self, message: str, raw_response: str = ''):
        super().__init__(message, details=raw_response[:500] or None)
        self.raw_response = raw_response


class GlobalAnalysisError(DemandDrafterError):
    """Case-level analysis failed; the whole request fails with it."""

    status_code = 500
