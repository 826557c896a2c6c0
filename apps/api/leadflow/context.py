from __future__ import annotations

from contextvars import ContextVar, Token

correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)
session_user_var: ContextVar[str | None] = ContextVar("session_user", default=None)


def set_correlation_id(value: str | None) -> Token[str | None]:
    return correlation_id_var.set(value)


def reset_correlation_id(token: Token[str | None]) -> None:
    correlation_id_var.reset(token)


def get_correlation_id() -> str | None:
    return correlation_id_var.get()


def set_session_user(value: str | None) -> Token[str | None]:
    return session_user_var.set(value)


def reset_session_user(token: Token[str | None]) -> None:
    session_user_var.reset(token)


def get_session_user() -> str | None:
    return session_user_var.get()


def get_log_context() -> dict[str, str | None]:
    return {"correlation_id": get_correlation_id(), "session_user": get_session_user()}
