from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class ErrorCode(IntEnum):
    NOT_INSTALLED = 1
    NOT_RUNNING = 2
    NOT_READY = 3
    TIMEOUT = 4
    UNKNOWN = 5


@dataclass(frozen=True)
class ErrorDescription:
    code: ErrorCode
    short_error: str
    action: str


ERRORS: dict[ErrorCode, ErrorDescription] = {
    ErrorCode.NOT_INSTALLED: ErrorDescription(
        code=ErrorCode.NOT_INSTALLED,
        short_error="Equalizer not installed.",
        action="Please install and launch the equalizer before retrying.",
    ),
    ErrorCode.NOT_RUNNING: ErrorDescription(
        code=ErrorCode.NOT_RUNNING,
        short_error="Equalizer not running.",
        action="Please launch the equalizer before retrying.",
    ),
    ErrorCode.NOT_READY: ErrorDescription(
        code=ErrorCode.NOT_READY,
        short_error="Equalizer not ready yet.",
        action="Please wait for the equalizer to finish starting, then retry.",
    ),
    ErrorCode.TIMEOUT: ErrorDescription(
        code=ErrorCode.TIMEOUT,
        short_error="Timeout waiting for a response.",
        action=(
            "Please restart the application. If the error persists, "
            "try reaching out to the developers to resolve the issue."
        ),
    ),
    ErrorCode.UNKNOWN: ErrorDescription(
        code=ErrorCode.UNKNOWN,
        short_error="Unexpected response from the equalizer.",
        action="Please retry. If the error persists, restart the equalizer and this application.",
    ),
}


def get_error_description(code: ErrorCode) -> ErrorDescription:
    return ERRORS[ErrorCode(code)]


class EqualizerError(Exception):
    """A failed equalizer call, identified by an ErrorDescription."""

    def __init__(self, description: ErrorDescription, detail: str = ""):
        self.description = description
        self.detail = detail
        message = description.short_error
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)

    @property
    def code(self) -> ErrorCode:
        return self.description.code

    @classmethod
    def from_code(cls, code: ErrorCode, detail: str = "") -> "EqualizerError":
        return cls(get_error_description(code), detail)
