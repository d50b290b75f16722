"""FastAPI dependencies for the comment system.

Provides dependency injection for:
- Comment service
- Report registry
- Error translation from domain errors to HTTP errors
"""

from typing import Annotated

from fastapi import Depends, Request, status

from blog_comments.core.responses import ApiError
from blog_comments.reports.service import ReportRegistry

from .exceptions import CommentError
from .service import CommentService


async def get_comment_service(request: Request) -> CommentService:
    """Get comment service from app state."""
    service = getattr(request.app.state, "comment_service", None)
    if service is None:
        raise ApiError(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "Servicio de comentarios no disponible",
            "service_unavailable",
        )
    return service


async def get_report_registry(request: Request) -> ReportRegistry:
    """Get report registry from app state."""
    registry = getattr(request.app.state, "report_registry", None)
    if registry is None:
        raise ApiError(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "Servicio de reportes no disponible",
            "service_unavailable",
        )
    return registry


# Type aliases for dependency injection
CommentServiceDep = Annotated[CommentService, Depends(get_comment_service)]
ReportRegistryDep = Annotated[ReportRegistry, Depends(get_report_registry)]


ERROR_STATUS = {
    "validation_error": status.HTTP_400_BAD_REQUEST,
    "post_not_found": status.HTTP_404_NOT_FOUND,
    "comment_not_found": status.HTTP_404_NOT_FOUND,
    "report_not_found": status.HTTP_404_NOT_FOUND,
    "permission_denied": status.HTTP_403_FORBIDDEN,
    "comments_closed": status.HTTP_403_FORBIDDEN,
    "invalid_state": status.HTTP_400_BAD_REQUEST,
    "max_depth_exceeded": status.HTTP_400_BAD_REQUEST,
    "comment_not_votable": status.HTTP_400_BAD_REQUEST,
    "invalid_transition": status.HTTP_409_CONFLICT,
    "duplicate_report": status.HTTP_409_CONFLICT,
    "concurrent_modification": status.HTTP_409_CONFLICT,
}


def handle_comment_error(error: CommentError) -> ApiError:
    """Convert comment errors to HTTP exceptions.

    Unknown codes map to 500 with a generic message.
    """
    status_code = ERROR_STATUS.get(error.code)
    if status_code is None:
        return ApiError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Error interno del servidor",
            "internal_error",
        )
    return ApiError(status_code, error.message, error.code)
