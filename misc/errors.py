from __future__ import annotations


class BotError(RuntimeError):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = str(code)


class FormatError(BotError):
    """User-supplied duration, date or document could not be parsed."""

    def __init__(self, message: str):
        super().__init__("format", message)


class NotFoundError(BotError):
    def __init__(self, message: str):
        super().__init__("not_found", message)


class StoreError(BotError):
    """A read or write against the sqlite store failed."""

    def __init__(self, message: str):
        super().__init__("store", message)


class ProviderError(BotError):
    """A call to the external playlist provider failed (network, quota, permission)."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__("provider", message)
        self.status_code = status_code
