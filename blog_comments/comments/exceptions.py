"""Domain errors for the comment subsystem.

Every error carries a stable ``code`` that the HTTP layer maps to a status.
Business-rule violations are raised before anything is written.
"""


class CommentError(Exception):
    """Base comment error."""

    def __init__(self, message: str, code: str = "comment_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(CommentError):
    """Missing or invalid input."""

    def __init__(self, message: str = "Datos invalidos"):
        super().__init__(message, "validation_error")


class PostNotFoundError(CommentError):
    def __init__(self, message: str = "Post no encontrado"):
        super().__init__(message, "post_not_found")


class CommentNotFoundError(CommentError):
    def __init__(self, message: str = "Comentario no encontrado"):
        super().__init__(message, "comment_not_found")


class ReportNotFoundError(CommentError):
    def __init__(self, message: str = "Reporte no encontrado"):
        super().__init__(message, "report_not_found")


class PermissionDeniedError(CommentError):
    """Actor lacks the permission for the operation."""

    def __init__(self, message: str = "No tienes permiso para realizar esta accion"):
        super().__init__(message, "permission_denied")


class CommentsClosedError(CommentError):
    """Post does not accept comments."""

    def __init__(self, message: str = "Los comentarios estan deshabilitados"):
        super().__init__(message, "comments_closed")


class InvalidStateError(CommentError):
    """Operation not allowed in the comment's current state."""

    def __init__(self, message: str, code: str = "invalid_state"):
        super().__init__(message, code)


class MaxDepthExceededError(InvalidStateError):
    def __init__(self, message: str = "Maximo nivel de anidacion alcanzado"):
        super().__init__(message, "max_depth_exceeded")


class NotVotableError(InvalidStateError):
    def __init__(self, message: str = "Solo se puede votar comentarios aprobados"):
        super().__init__(message, "comment_not_votable")


class InvalidTransitionError(InvalidStateError):
    """Status transition not allowed by the lifecycle."""

    def __init__(self, current: str, target: str):
        super().__init__(
            f"No se puede cambiar el estado de '{current}' a '{target}'",
            "invalid_transition",
        )
        self.current = current
        self.target = target


class DuplicateReportError(CommentError):
    def __init__(self, message: str = "Ya has reportado este comentario"):
        super().__init__(message, "duplicate_report")


class ConcurrentModificationError(CommentError):
    """Conditional update kept losing against concurrent writers."""

    def __init__(self, message: str = "El comentario fue modificado, intenta de nuevo"):
        super().__init__(message, "concurrent_modification")
