"""
Pydantic schemas for the artist management API.

Field names follow the camelCase JSON of the existing web client.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class MessageResponse(BaseModel):
    message: str


class ArtistResponse(BaseModel):
    id: str
    artistName: str
    stageName: str = ""
    numberOfAlbums: int = 0
    careerStartDate: str = ""
    socialMediaLinks: list[str] = Field(default_factory=list)
    recordLabel: str = ""
    publishingHouse: str = ""
    artistImage: str = ""
    rating: float = 0.0
    createdAt: Optional[Any] = None


class ArtistListResponse(BaseModel):
    artists: list[ArtistResponse]
    page: int
    page_size: int


class RateRequest(BaseModel):
    userId: Optional[str] = None
    # Validated by the recorder so non-numbers map to the same 400 message.
    rating: Any = None


class RateResponse(BaseModel):
    message: str
    artistId: str
    averageRating: float


class RegisterRequest(BaseModel):
    name: str = Field(default="", max_length=256)
    email: str
    password: str


class RegisterResponse(BaseModel):
    message: str
    userId: str


class LoginRequest(BaseModel):
    email: str
    password: Optional[str] = None


class LoginResponse(BaseModel):
    message: str
    idToken: str
    userId: str


class UserResponse(BaseModel):
    id: str
    name: str = ""
    email: str = ""
    follow_artist: list[str] = Field(default_factory=list)
    ratings: dict[str, float] = Field(default_factory=dict)


class FollowRequest(BaseModel):
    userId: Optional[str] = None


class FollowResponse(BaseModel):
    message: str
    follow_artist: list[str]


class RecomputeResponse(BaseModel):
    message: str
    updated: dict[str, float]
