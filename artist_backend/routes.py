"""
HTTP routes for the artist management API.

Handlers raise the errors from ``artist_backend.errors``; the exception
handlers installed by ``create_app`` turn them into responses.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import StreamingResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from artist_backend.artists import ArtistRepository, ImageUpload
from artist_backend.change_feed import ChangeFeedRelay
from artist_backend.config import get_settings
from artist_backend.dependencies import (
    get_aggregation_engine,
    get_artist_repository,
    get_change_feed,
    get_rating_recorder,
    get_user_repository,
)
from artist_backend.ratings import AggregationEngine, RatingRecorder
from artist_backend.schemas import (
    ArtistListResponse,
    ArtistResponse,
    FollowRequest,
    FollowResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RateRequest,
    RateResponse,
    RecomputeResponse,
    RegisterRequest,
    RegisterResponse,
    UserResponse,
)
from artist_backend.users import UserRepository

logger = logging.getLogger(__name__)

artists_router = APIRouter(prefix="/artists", tags=["artists"])
users_router = APIRouter(prefix="/users", tags=["users"])
maintenance_router = APIRouter(prefix="/maintenance", tags=["maintenance"])
stream_router = APIRouter(tags=["stream"])

bearer_scheme = HTTPBearer(auto_error=False)


def _read_image(upload: Optional[UploadFile]) -> Optional[ImageUpload]:
    # Browsers send an empty part with no filename when no file was picked.
    if upload is None or not upload.filename:
        return None
    limit = get_settings().max_image_bytes
    # One byte past the limit is enough for the repository to reject it.
    content = upload.file.read(limit + 1)
    return ImageUpload(
        filename=upload.filename,
        content=content,
        content_type=upload.content_type or "application/octet-stream",
    )


def _artist_fields(**fields) -> dict:
    return {key: value for key, value in fields.items() if value is not None}


# Artists


@artists_router.post("", response_model=ArtistResponse, status_code=201)
def create_artist(
    artistName: Optional[str] = Form(None),
    stageName: Optional[str] = Form(None),
    numberOfAlbums: Optional[str] = Form(None),
    careerStartDate: Optional[str] = Form(None),
    socialMediaLinks: Optional[str] = Form(None),
    recordLabel: Optional[str] = Form(None),
    publishingHouse: Optional[str] = Form(None),
    artistImage: Optional[UploadFile] = File(None),
    repo: ArtistRepository = Depends(get_artist_repository),
):
    fields = _artist_fields(
        artistName=artistName,
        stageName=stageName,
        numberOfAlbums=numberOfAlbums,
        careerStartDate=careerStartDate,
        socialMediaLinks=socialMediaLinks,
        recordLabel=recordLabel,
        publishingHouse=publishingHouse,
    )
    artist = repo.create(fields, _read_image(artistImage))
    return artist.as_response()


@artists_router.get("", response_model=ArtistListResponse)
def list_artists(
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1, le=100),
    repo: ArtistRepository = Depends(get_artist_repository),
):
    page_size = page_size or get_settings().default_page_size
    artists = repo.list(page=page, page_size=page_size)
    return ArtistListResponse(
        artists=[artist.as_response() for artist in artists],
        page=page,
        page_size=page_size,
    )


@artists_router.get("/{artist_id}", response_model=ArtistResponse)
def get_artist(
    artist_id: str, repo: ArtistRepository = Depends(get_artist_repository)
):
    return repo.get(artist_id).as_response()


@artists_router.put("/{artist_id}", response_model=ArtistResponse)
def update_artist(
    artist_id: str,
    artistName: Optional[str] = Form(None),
    stageName: Optional[str] = Form(None),
    numberOfAlbums: Optional[str] = Form(None),
    careerStartDate: Optional[str] = Form(None),
    socialMediaLinks: Optional[str] = Form(None),
    recordLabel: Optional[str] = Form(None),
    publishingHouse: Optional[str] = Form(None),
    rating: Optional[str] = Form(None),
    artistImage: Optional[UploadFile] = File(None),
    repo: ArtistRepository = Depends(get_artist_repository),
):
    fields = _artist_fields(
        artistName=artistName,
        stageName=stageName,
        numberOfAlbums=numberOfAlbums,
        careerStartDate=careerStartDate,
        socialMediaLinks=socialMediaLinks,
        recordLabel=recordLabel,
        publishingHouse=publishingHouse,
        rating=rating,
    )
    artist = repo.update(artist_id, fields, _read_image(artistImage))
    return artist.as_response()


@artists_router.delete("/{artist_id}", response_model=MessageResponse)
def delete_artist(
    artist_id: str, repo: ArtistRepository = Depends(get_artist_repository)
):
    repo.delete(artist_id)
    return MessageResponse(message="Artist deleted successfully")


@artists_router.post("/{artist_id}/rate", response_model=RateResponse)
def rate_artist(
    artist_id: str,
    payload: RateRequest,
    recorder: RatingRecorder = Depends(get_rating_recorder),
):
    """
    Kept for older clients; goes through the same per-user recorder as
    ``POST /users/rate/{artist_id}``.
    """
    value = recorder.record_rating(payload.userId, artist_id, payload.rating)
    return RateResponse(
        message="Artist rated successfully", artistId=artist_id, averageRating=value
    )


# Users


@users_router.post("/register", response_model=RegisterResponse, status_code=201)
def register(
    payload: RegisterRequest, repo: UserRepository = Depends(get_user_repository)
):
    uid = repo.register(payload.name, payload.email, payload.password)
    return RegisterResponse(message="User registered successfully", userId=uid)


@users_router.post("/login", response_model=LoginResponse)
def login(payload: LoginRequest, repo: UserRepository = Depends(get_user_repository)):
    result = repo.login(payload.email, payload.password or "")
    return LoginResponse(
        message="User logged in successfully",
        idToken=result.id_token,
        userId=result.user_id,
    )


@users_router.get("/all", response_model=list[UserResponse])
def list_users(repo: UserRepository = Depends(get_user_repository)):
    return [asdict(user) for user in repo.list_all()]


@users_router.post("/follow/{artist_id}", response_model=FollowResponse)
def follow_artist(
    artist_id: str,
    payload: FollowRequest,
    repo: UserRepository = Depends(get_user_repository),
):
    follow_list = repo.follow(payload.userId, artist_id)
    return FollowResponse(
        message="Artist followed successfully", follow_artist=follow_list
    )


@users_router.post("/rate/{artist_id}", response_model=RateResponse)
def rate_artist_as_user(
    artist_id: str,
    payload: RateRequest,
    recorder: RatingRecorder = Depends(get_rating_recorder),
):
    value = recorder.record_rating(payload.userId, artist_id, payload.rating)
    return RateResponse(
        message="Artist rated successfully", artistId=artist_id, averageRating=value
    )


@users_router.get("/profile", response_model=UserResponse)
def profile(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    repo: UserRepository = Depends(get_user_repository),
):
    token = credentials.credentials if credentials else None
    return asdict(repo.get_profile(token))


@users_router.put("/update-average-rating/{artist_id}", response_model=RateResponse)
def update_average_rating(
    artist_id: str, engine: AggregationEngine = Depends(get_aggregation_engine)
):
    value = engine.recompute_one(artist_id)
    return RateResponse(
        message="Average rating updated successfully",
        artistId=artist_id,
        averageRating=value,
    )


# Maintenance


@maintenance_router.post("/recompute-ratings", response_model=RecomputeResponse)
def recompute_ratings(engine: AggregationEngine = Depends(get_aggregation_engine)):
    updated = engine.recompute_all()
    return RecomputeResponse(
        message=f"Recomputed {len(updated)} artist ratings", updated=updated
    )


# Change feed


@stream_router.get("/stream-artists")
async def stream_artists(
    request: Request, relay: ChangeFeedRelay = Depends(get_change_feed)
):
    settings = get_settings()
    return StreamingResponse(
        relay.events(
            request.is_disconnected,
            keepalive_seconds=settings.stream_keepalive_seconds,
        ),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
