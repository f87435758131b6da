"""
API routes for the community forum.
"""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from supabase import Client

from app.api.deps import get_db
from app.api.middleware.auth import AuthenticatedUser, get_current_user
from app.models.base import CamelModel
from app.services.forum import ForumService

router = APIRouter(prefix="/api/forum", tags=["forum"])


# ══════════════════════════════════════════════════════════
# Request/Response Models
# ══════════════════════════════════════════════════════════


class CreateThreadRequest(CamelModel):
    title: str = ""
    body: str | None = None
    category_id: str | None = None
    tags: list[str] | str | None = None


class CreateReplyRequest(BaseModel):
    body: str = ""


# ══════════════════════════════════════════════════════════
# Endpoints
# ══════════════════════════════════════════════════════════


@router.get("/categories")
async def list_categories(db: Client = Depends(get_db)) -> dict[str, Any]:
    return {"data": [category.to_api() for category in ForumService(db).list_categories()]}


@router.get("/threads")
async def list_threads(category: str | None = None, db: Client = Depends(get_db)) -> dict[str, Any]:
    """Latest 50 threads, optionally within one category slug."""
    threads = ForumService(db).list_threads(category_slug=category)
    return {"data": [thread.to_api() for thread in threads]}


@router.post("/threads")
async def create_thread(
    body: CreateThreadRequest,
    auth: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    thread = ForumService(db).create_thread(
        author_profile_id=auth.user_id,
        title=body.title,
        body=body.body,
        category_id=body.category_id,
        tags=body.tags,
    )
    return {"data": thread.to_api()}


@router.get("/threads/{slug}")
async def get_thread(slug: str, db: Client = Depends(get_db)) -> dict[str, Any]:
    return {"data": ForumService(db).get_thread(slug).to_api()}


@router.post("/threads/{slug}/replies")
async def create_reply(
    slug: str,
    body: CreateReplyRequest,
    auth: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    reply = ForumService(db).reply(slug, auth.user_id, body.body)
    return {"data": reply.to_api()}
