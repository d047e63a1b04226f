from fastapi import Header, HTTPException, Request


async def verify_service_token(
    request: Request,
    x_internal_service_token: str | None = Header(default=None, alias="X-Internal-Service-Token"),
) -> None:
    """Verify the X-Internal-Service-Token header against the configured token.

    Args:
        request (Request): The FastAPI request object (provides app.state).
        x_internal_service_token (str | None): The value of the X-Internal-Service-Token header.

    Raises:
        HTTPException: 500 if no token is configured, 401 if the header is missing or does not match.
    """
    helper_config = request.app.state.helper_config
    expected_token = helper_config.get_string_val("INTERNAL_SERVICE_TOKEN", default="")
    if not expected_token:
        request.app.state.logging.error("INTERNAL_SERVICE_TOKEN is not configured. Rejecting request.")
        raise HTTPException(status_code=500, detail="Service token not configured")
    if x_internal_service_token != expected_token:
        raise HTTPException(status_code=401, detail="Invalid or missing service token")
