from fastapi import HTTPException, Request, Security
from fastapi.security.api_key import APIKeyHeader
from starlette.status import HTTP_401_UNAUTHORIZED

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=True)


def validate_api_key(request: Request, api_key: str = Security(api_key_header)):
    if api_key != request.app.state.settings.api_key:
        raise HTTPException(
            status_code=HTTP_401_UNAUTHORIZED,
            detail="Invalid API Key",
        )
    return api_key
