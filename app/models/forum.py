"""
Forum view models.
"""

from pydantic import Field

from app.models.base import CamelModel


class ForumCategory(CamelModel):
    id: str
    slug: str
    name: str


class ReviewCourtRef(CamelModel):
    id: str
    slug: str
    name: str


class ForumThreadSummary(CamelModel):
    id: str
    slug: str
    title: str
    excerpt: str | None = None
    reply_count: int = 0
    created_at: str | None = None
    tags: list[str] = Field(default_factory=list)
    category: ForumCategory | None = None
    author_name: str | None = None
    latest_reply_body: str | None = None
    latest_reply_at: str | None = None
    review_court: ReviewCourtRef | None = None


class ForumReply(CamelModel):
    id: str
    body: str
    created_at: str | None = None
    author_name: str | None = None


class ForumThreadDetail(ForumThreadSummary):
    body: str | None = None
    replies: list[ForumReply] = Field(default_factory=list)
