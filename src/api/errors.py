"""Mapping of credential failures to HTTP responses."""

from fastapi import HTTPException, status

from domain.model.errors import AuthErrorKind, AuthFailure

STATUS_BY_KIND = {
    AuthErrorKind.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    AuthErrorKind.INVALID_CODE: status.HTTP_400_BAD_REQUEST,
    AuthErrorKind.INVALID_TOKEN: status.HTTP_400_BAD_REQUEST,
    AuthErrorKind.EXPIRED: status.HTTP_400_BAD_REQUEST,
    AuthErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    AuthErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    AuthErrorKind.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    AuthErrorKind.NOT_VERIFIED: status.HTTP_403_FORBIDDEN,
    AuthErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def to_http_exception(failure: AuthFailure) -> HTTPException:
    """Build the HTTPException a route raises for a failed operation.

    The body is ``{"detail": {"error": <kind>, "message": ..., "code": <hint>}}``;
    ``code`` is only present when the failure carries a hint.
    """
    detail = {"error": failure.kind.value, "message": failure.message}
    if failure.hint:
        detail["code"] = failure.hint
    return HTTPException(status_code=STATUS_BY_KIND[failure.kind], detail=detail)
