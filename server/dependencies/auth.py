from fastapi import Request

from shared.models.context import CallerIdentity
from shared.models.errors import ForbiddenError, UnauthorizedError


def get_bearer_token(request: Request) -> str | None:
    """Return the token of an "Authorization: Bearer <token>" header, if present."""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def resolve_caller(request: Request) -> CallerIdentity | None:
    """Resolve the caller once per request and cache it on request.state.

    The edge guard and the route dependencies share the cached value, so the
    identity provider is asked at most once per request.
    """
    if hasattr(request.state, "caller"):
        return request.state.caller

    token = get_bearer_token(request)
    caller = None
    if token:
        caller = await request.app.state.auth_client.do_resolve_caller(token)
    request.state.caller = caller
    return caller


async def get_optional_caller(request: Request) -> CallerIdentity | None:
    """Caller or None. Used by POST /chat, where the orchestrator owns the 401."""
    return await resolve_caller(request)


async def require_caller(request: Request) -> CallerIdentity:
    """
    Raises:
        UnauthorizedError: 401 if the bearer token is missing or invalid.
    """
    caller = await resolve_caller(request)
    if caller is None:
        raise UnauthorizedError("Unauthorized")
    return caller


async def require_elevated_role(request: Request) -> CallerIdentity:
    """
    Raises:
        UnauthorizedError: 401 if the bearer token is missing or invalid.
        ForbiddenError: 403 if the caller is neither admin nor owner.
    """
    caller = await require_caller(request)
    if not caller.is_elevated:
        raise ForbiddenError("Forbidden: Access Denied")
    return caller
