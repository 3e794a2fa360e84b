"""Authorization relay: validate a bearer token and republish the caller's identity."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from gainz.api.deps import get_relay
from gainz.core.errors import AppError
from gainz.services.relay import IDENTITY_HEADER, AuthorizationRelay, encode_identity_header

logger = logging.getLogger(__name__)
router = APIRouter(tags=["authorization"])


class ValidateBody(BaseModel):
    token: str | None = None


@router.post(
    "/validate",
    summary="Validate an access token and return its user",
    responses={
        401: {"description": "Token missing, invalid or expired"},
        404: {"description": "User not found"},
        500: {"description": "Server error"},
    },
)
async def validate_token(
    relay: Annotated[AuthorizationRelay, Depends(get_relay)],
    body: ValidateBody,
) -> JSONResponse:
    """Always answers {valid, message[, user]}; X-User-Info carries the identity on success."""
    try:
        user = await relay.validate(body.token)
    except AppError as e:
        return JSONResponse(status_code=e.status_code, content={"valid": False, "message": e.message})
    except Exception:
        logger.exception("Token validation failed")
        return JSONResponse(status_code=500, content={"valid": False, "message": "Server error"})
    return JSONResponse(
        status_code=200,
        content={"valid": True, "message": "Token is valid", "user": user},
        headers={IDENTITY_HEADER: encode_identity_header(user)},
    )
