"""Account and token API routes."""

from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Response, status

from invtrac.server.api.deps import get_access_ttl, get_current_token, get_db
from invtrac.server.database import Database, DuplicateUserError
from invtrac.server.models import Token
from invtrac.server.schemas import (
    RefreshRequest,
    SignupRequest,
    SignupResponse,
    TokenRequest,
    TokenResponse,
    tokens_to_response,
    user_to_response,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


@router.post(
    "/signup",
    response_model=SignupResponse,
    status_code=status.HTTP_201_CREATED,
)
def signup(
    request: SignupRequest,
    db: Database = Depends(get_db),
) -> SignupResponse:
    """Create an account."""
    try:
        user = db.create_user(request.email, request.password, request.name)
    except DuplicateUserError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A user with this email address has already been registered",
        ) from e

    logger.info("Created user %d", user.id)
    return SignupResponse(user=user_to_response(user))


@router.post("/auth/token", response_model=TokenResponse)
def issue_token(
    request: TokenRequest,
    db: Database = Depends(get_db),
    access_ttl: timedelta = Depends(get_access_ttl),
) -> TokenResponse:
    """Sign in with email and password."""
    user = db.authenticate(request.email, request.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid login credentials",
        )
    logger.info("User %d signed in", user.id)
    return tokens_to_response(db.issue_tokens(user.id, access_ttl))


@router.post("/auth/refresh", response_model=TokenResponse)
def refresh_token(
    request: RefreshRequest,
    db: Database = Depends(get_db),
    access_ttl: timedelta = Depends(get_access_ttl),
) -> TokenResponse:
    """Exchange a refresh token for a new token pair."""
    tokens = db.refresh_tokens(request.refresh_token, access_ttl)
    if tokens is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
        )
    return tokens_to_response(tokens)


@router.post("/auth/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    token: Token = Depends(get_current_token),
    db: Database = Depends(get_db),
) -> Response:
    """Revoke every token of the current user."""
    db.revoke_user_tokens(token.user_id)
    logger.info("User %d signed out", token.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
