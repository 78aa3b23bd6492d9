"""FastAPI authentication and scoping dependencies."""

from fastapi import HTTPException, Request


async def verify_api_key(request: Request) -> None:
    """Verify the API key provided in the request header.

    Args:
        request (Request): The incoming FastAPI request.

    Raises:
        HTTPException: If the API key is missing or invalid (401).
    """
    config = request.app.state.config
    expected_key = config.get_string_val("APP_API_KEY")
    provided_key = request.headers.get("X-API-Key")
    if not provided_key or provided_key != expected_key:
        raise HTTPException(status_code=401, detail="Invalid or missing API key.")


def resolve_owner_scope(request: Request, owner_id: str | None) -> str | None:
    """Return the owner scope of a search, rejecting unscoped searches unless allowed.

    Args:
        request (Request): The incoming FastAPI request (carries app state).
        owner_id (str | None): The requested owner. None or empty means all owners.

    Returns:
        str | None: The stripped owner id, or None for an authorized global search.

    Raises:
        HTTPException: If the search is unscoped and APP_ALLOW_GLOBAL_SEARCH is not enabled (403).
    """
    if owner_id is not None and owner_id.strip():
        return owner_id.strip()
    config = request.app.state.config
    if not config.get_bool_val("APP_ALLOW_GLOBAL_SEARCH", default=False):
        raise HTTPException(status_code=403, detail="Searching across all owners is not allowed.")
    return None
