"""Edge-level role gate for administrative routes.

Runs before routing. The routers check the role again through their own
dependencies, so a route that is accidentally left out of
EDGE_GUARDED_PATHS is still protected.
"""

from fastapi import Request
from fastapi.responses import JSONResponse

from server.dependencies.auth import resolve_caller

DEFAULT_GUARDED_PATHS = ["/knowledge", "/admin"]


def _is_guarded(path: str, guarded_paths: list[str]) -> bool:
    return any(path == prefix or path.startswith(prefix.rstrip("/") + "/") for prefix in guarded_paths)


async def edge_guard_middleware(request: Request, call_next):
    helper_config = request.app.state.helper_config
    guarded_paths = helper_config.get_list_val("EDGE_GUARDED_PATHS", default=DEFAULT_GUARDED_PATHS)

    if request.method == "OPTIONS" or not _is_guarded(request.url.path, guarded_paths):
        return await call_next(request)

    caller = await resolve_caller(request)
    if caller is None:
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})
    if not caller.is_elevated:
        request.app.state.logging.warning(
            "Edge guard rejected '%s' (role '%s') on %s", caller.user_id, caller.role, request.url.path
        )
        return JSONResponse(status_code=403, content={"error": "Forbidden: Access Denied"})

    return await call_next(request)
