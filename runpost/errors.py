from __future__ import annotations


class RunpostError(Exception):
    pass


class AuthRequired(RunpostError):
    def __init__(self, message: str = "Authorization required.", *, reason: str = "no_token") -> None:
        super().__init__(message)
        self.reason = reason


class TokenRefreshFailed(RunpostError):
    pass


class ActivityNotFound(RunpostError):
    def __init__(self, category: str) -> None:
        super().__init__(f"No '{category}' activity found.")
        self.category = category


class ParseError(RunpostError):
    pass


class EmptyInput(RunpostError):
    pass
