from .sessions import SessionCookie, SessionPayload

__all__ = [
    "SessionCookie",
    "SessionPayload",
]
