"""Example posts API.

Posts are not persisted; the endpoints demonstrate pagination parameters
and sanitized JSON input.
"""

import time
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from formguard.services.sanitize import sanitized_json_body

router = APIRouter(tags=["posts"])


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class PostListResponse(BaseModel):
    status: str = "success"
    posts: list[dict[str, Any]]
    pagination: Pagination


class Post(BaseModel):
    id: int
    title: str
    content: str
    excerpt: str | None = None
    created_at: datetime


class PostResponse(BaseModel):
    status: str = "success"
    post: Post


@router.get("/posts", response_model=PostListResponse)
async def list_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> PostListResponse:
    return PostListResponse(
        posts=[],
        pagination=Pagination(page=page, limit=limit, total=0, pages=0),
    )


@router.post("/posts", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(payload: Any = Depends(sanitized_json_body)) -> PostResponse:
    """Create a post from a sanitized JSON body.

    Requires ``title`` and ``content``; returns 400 otherwise.
    """
    if not isinstance(payload, dict) or not payload.get("title") or not payload.get("content"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Title and content are required",
        )

    return PostResponse(
        post=Post(
            id=time.time_ns() // 1_000_000,
            title=str(payload["title"]),
            content=str(payload["content"]),
            excerpt=str(payload["excerpt"]) if payload.get("excerpt") is not None else None,
            created_at=datetime.now(UTC),
        )
    )
