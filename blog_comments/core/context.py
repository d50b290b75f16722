"""Request context management using contextvars.

Each request gets an id and, once the caller is resolved, an actor id. Both
are injected into every log line without being passed down the call stack.
"""

from contextvars import ContextVar
from typing import Any
from uuid import uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
actor_id_var: ContextVar[str | None] = ContextVar("actor_id", default=None)
client_ip_var: ContextVar[str | None] = ContextVar("client_ip", default=None)


def generate_request_id() -> str:
    """Generate a new unique request ID."""
    return str(uuid4())


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID for the current context.

    Args:
        request_id: Optional request ID. If not provided, generates a new one.

    Returns:
        The request ID that was set.
    """
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def get_actor_id() -> str | None:
    """Get the id of the actor making the current request."""
    return actor_id_var.get()


def set_actor_id(actor_id: str | None) -> None:
    """Bind the resolved actor to the current context."""
    actor_id_var.set(str(actor_id) if actor_id is not None else None)


def set_client_ip(client_ip: str | None) -> None:
    client_ip_var.set(client_ip)


def get_context() -> dict[str, Any]:
    """Get all non-empty context variables as a dictionary."""
    context: dict[str, Any] = {}

    request_id = get_request_id()
    if request_id:
        context["request_id"] = request_id

    actor_id = get_actor_id()
    if actor_id:
        context["actor_id"] = actor_id

    client_ip = client_ip_var.get()
    if client_ip:
        context["client_ip"] = client_ip

    return context


def clear_context() -> None:
    """Clear all context variables.

    Called at the end of each request to prevent context leaking into
    the next one handled by the same task.
    """
    request_id_var.set("")
    actor_id_var.set(None)
    client_ip_var.set(None)
