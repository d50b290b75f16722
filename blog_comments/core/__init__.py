# Core infrastructure
from blog_comments.core.context import (
    clear_context,
    get_actor_id,
    get_context,
    get_request_id,
    set_actor_id,
    set_client_ip,
    set_request_id,
)
from blog_comments.core.database import init_async_cassandra, shutdown_async_cassandra
from blog_comments.core.logging import configure_structlog, get_logger
from blog_comments.core.middleware import RequestContextMiddleware, get_client_ip


__all__ = [
    "RequestContextMiddleware",
    "clear_context",
    "configure_structlog",
    "get_actor_id",
    "get_client_ip",
    "get_context",
    "get_logger",
    "get_request_id",
    "init_async_cassandra",
    "set_actor_id",
    "set_client_ip",
    "set_request_id",
    "shutdown_async_cassandra",
]
