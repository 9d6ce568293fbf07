"""
api/routes/v1/auth.py -- Token issuing endpoint.

Routes:
  POST /users/authenticate   -- password login; returns {"token"} and sets JWT cookie

Security:
  POST /users/authenticate is rate-limited per IP (LOGIN_RATE_LIMIT).
  authenticate_user() provides timing equalization -- use it, never inline.
  Cache-Control: no-store on every response from this route.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import AuthenticationRequest, AuthenticationResponse
from auth.store import UserStore
from auth.tokens import authenticate_user, create_access_token, set_auth_cookie
from core.config import get_settings

logger = logging.getLogger("backendtemplate.api.auth")

# Auth policy:
# - POST /users/authenticate: public -- login endpoint must be unauthenticated
router = APIRouter()


@limiter.limit(get_settings().login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/users/authenticate", response_model=AuthenticationResponse)
def authenticate(request: Request, body: AuthenticationRequest) -> JSONResponse:
    """Exchange a username and password for a signed JWT.

    Returns the same generic error for an unknown username and a wrong
    password so the response does not reveal which one was wrong.
    """
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.username, body.password)
    if user is None:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Incorrect username or password"}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    token = create_access_token(user.username, sorted(user.authority_names()))
    logger.info("Issued token for %s", user.username)
    resp = JSONResponse(status_code=200, content=AuthenticationResponse(token=token).model_dump())
    set_auth_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp
