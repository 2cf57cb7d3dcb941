"""Exception hierarchy shared by the chat pipeline and its service adapters."""

from __future__ import annotations


class MailbotError(Exception):
    """Base exception for the mailbot backend."""


class ToolError(MailbotError):
    """Raised by the tool-execution boundary when a remote call cannot complete."""

    def __init__(self, message: str, *, operation_id: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.operation_id = operation_id
        self.status_code = status_code


class ToolNotFoundError(ToolError):
    """The remote provider does not recognize the operation identifier."""


class ToolValidationError(ToolError):
    """The remote provider rejected the arguments sent to a known operation."""


class ToolTransportError(ToolError):
    """Network, authentication, or provider-side failure."""


class PlanContractError(MailbotError):
    """An execution plan was built in a way that violates its invariants."""


class DependentPreconditionError(MailbotError):
    """No usable record was found for a follow-up action to act on."""


class AuthError(MailbotError):
    """The caller could not be authenticated."""


class PreferenceStoreError(MailbotError):
    """Reading or writing user preferences failed."""
