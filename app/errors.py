# app/errors.py
from __future__ import annotations


class EngineError(Exception):
    """Base for errors the services raise; routes map them to HTTP codes."""

    status_code = 500

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail or self.__class__.__name__


class NotFound(EngineError):
    status_code = 404


class Unauthorized(EngineError):
    status_code = 401


class Forbidden(EngineError):
    status_code = 403


class ValidationFailed(EngineError):
    status_code = 400


class SlugExhausted(EngineError):
    """No free slug found within the configured number of attempts."""

    status_code = 503
