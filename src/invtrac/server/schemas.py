"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from invtrac.server.database import IssuedTokens
from invtrac.server.models import User

# === Account schemas ===


class SignupRequest(BaseModel):
    """Request body for account creation."""

    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=6)
    name: str = ""


class UserResponse(BaseModel):
    """User data in responses."""

    id: int
    email: str
    name: str
    created_at: str


class SignupResponse(BaseModel):
    """Response for account creation."""

    user: UserResponse


# === Token schemas ===


class TokenRequest(BaseModel):
    """Request body for password sign-in."""

    email: str
    password: str


class RefreshRequest(BaseModel):
    """Request body for token refresh."""

    refresh_token: str


class TokenResponse(BaseModel):
    """Issued token pair."""

    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "bearer"


# === User data schemas ===


class CategoryData(BaseModel):
    """A stored category."""

    id: str
    name: str


class ItemData(BaseModel):
    """A stored item. Wire keys are camelCase."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    quantity: int = Field(ge=0)
    category_id: str = Field(alias="categoryId")
    original_price: float = Field(default=0.0, ge=0, alias="originalPrice")
    sales_price: float = Field(default=0.0, ge=0, alias="salesPrice")


class UserData(BaseModel):
    """The whole inventory document of one user."""

    categories: list[CategoryData] = Field(default_factory=list)
    items: list[ItemData] = Field(default_factory=list)


class SaveResponse(BaseModel):
    """Response for a successful save."""

    success: bool = True


# === Health schema ===


class HealthResponse(BaseModel):
    """Health check response."""

    status: str


# === Converters ===


def user_to_response(user: User) -> UserResponse:
    """Convert User to response model."""
    return UserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        created_at=user.created_at.isoformat(),
    )


def tokens_to_response(tokens: IssuedTokens) -> TokenResponse:
    """Convert issued tokens to response model."""
    return TokenResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_in=tokens.expires_in,
    )
