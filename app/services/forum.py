"""
Community forum: categories, threads, replies.
"""

import random
import re
import string

import structlog
from supabase import Client

from app.db.repository import CourtRepository, ForumRepository, ProfileRepository, ReviewRepository
from app.errors import BookingValidationError, NotFoundError
from app.models.forum import (
    ForumCategory,
    ForumReply,
    ForumThreadDetail,
    ForumThreadSummary,
    ReviewCourtRef,
)

logger = structlog.get_logger()

EXCERPT_LENGTH = 160


def slugify(text: str, max_length: int = 60) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (text or "").lower()).strip("-")
    return slug[:max_length]


def random_suffix(length: int = 6, rng: random.Random | None = None) -> str:
    rng = rng or random
    alphabet = string.ascii_lowercase + string.digits
    return "".join(rng.choice(alphabet) for _ in range(length))


def normalize_tags(tags: list[str] | str | None) -> list[str]:
    """Accepts a list or a comma separated string; strips '#' prefixes."""
    if isinstance(tags, str):
        tags = tags.split(",")
    cleaned = []
    for tag in tags or []:
        tag = str(tag).strip().lstrip("#")
        if tag:
            cleaned.append(tag)
    return cleaned


class ForumService:
    def __init__(self, client: Client):
        self.forum = ForumRepository(client)
        self.profiles = ProfileRepository(client)
        self.reviews = ReviewRepository(client)
        self.courts = CourtRepository(client)

    def list_categories(self) -> list[ForumCategory]:
        try:
            return [ForumCategory(**row) for row in self.forum.list_categories()]
        except Exception as e:
            logger.error("Failed to fetch forum categories", error=str(e))
            return []

    def _summaries(self, rows: list[dict]) -> list[ForumThreadSummary]:
        categories = {c["id"]: ForumCategory(**c) for c in self.forum.list_categories()}
        authors = {
            p["id"]: p.get("full_name")
            for p in self.profiles.list_by_ids(
                sorted({r["author_profile_id"] for r in rows if r.get("author_profile_id")})
            )
        }
        thread_ids = [row["id"] for row in rows]

        review_courts: dict[str, ReviewCourtRef] = {}
        try:
            links = self.reviews.list_by_thread_ids(thread_ids)
            courts = {
                c["id"]: c
                for c in self.courts.list_by_ids(sorted({l["court_id"] for l in links if l.get("court_id")}))
            }
            for link in links:
                court = courts.get(link.get("court_id"))
                if court:
                    review_courts[link["forum_thread_id"]] = ReviewCourtRef(
                        id=court["id"], slug=court.get("slug") or "", name=court.get("name") or ""
                    )
        except Exception as e:
            logger.error("Failed to fetch review thread links", error=str(e))

        latest: dict[str, dict] = {}
        try:
            latest = {row["thread_id"]: row for row in self.forum.latest_activity(thread_ids)}
        except Exception as e:
            logger.error("Failed to fetch latest forum replies", error=str(e))

        summaries = []
        for row in rows:
            activity = latest.get(row["id"], {})
            summaries.append(
                ForumThreadSummary(
                    id=row["id"],
                    slug=row.get("slug") or "",
                    title=row.get("title") or "",
                    excerpt=row.get("excerpt"),
                    reply_count=int(row.get("reply_count") or 0),
                    created_at=row.get("created_at"),
                    tags=row.get("tags") if isinstance(row.get("tags"), list) else [],
                    category=categories.get(row.get("category_id")),
                    author_name=authors.get(row.get("author_profile_id")),
                    latest_reply_body=activity.get("latest_reply_body"),
                    latest_reply_at=activity.get("latest_reply_created_at"),
                    review_court=review_courts.get(row["id"]),
                )
            )
        return summaries

    def list_threads(self, category_slug: str | None = None) -> list[ForumThreadSummary]:
        category_id = None
        if category_slug:
            category = self.forum.get_category_by_slug(category_slug)
            if not category:
                return []
            category_id = category["id"]
        return self._summaries(self.forum.list_threads(category_id))

    def get_thread(self, slug: str) -> ForumThreadDetail:
        row = self.forum.get_thread_by_slug(slug)
        if not row:
            raise NotFoundError("Thread tidak ditemukan.")

        summary = self._summaries([row])[0]
        replies = self.forum.list_replies(row["id"])
        authors = {
            p["id"]: p.get("full_name")
            for p in self.profiles.list_by_ids(
                sorted({r["author_profile_id"] for r in replies if r.get("author_profile_id")})
            )
        }
        return ForumThreadDetail(
            **summary.model_dump(),
            body=row.get("body"),
            replies=[
                ForumReply(
                    id=reply["id"],
                    body=reply.get("body") or "",
                    created_at=reply.get("created_at"),
                    author_name=authors.get(reply.get("author_profile_id")),
                )
                for reply in replies
            ],
        )

    def create_thread(
        self,
        author_profile_id: str,
        title: str,
        body: str | None = None,
        category_id: str | None = None,
        tags: list[str] | str | None = None,
    ) -> ForumThreadSummary:
        title = (title or "").strip()
        if not title:
            raise BookingValidationError("Judul thread wajib diisi.")

        body = (body or "").strip()
        row = self.forum.create_thread(
            slug=f"{slugify(title) or 'thread'}-{random_suffix()}",
            title=title,
            body=body or None,
            excerpt=body[:EXCERPT_LENGTH] or None,
            category_id=category_id or None,
            author_profile_id=author_profile_id,
            tags=normalize_tags(tags),
        )
        return self._summaries([row])[0]

    def reply(self, slug: str, author_profile_id: str, body: str) -> ForumReply:
        body = (body or "").strip()
        if not body:
            raise BookingValidationError("Balasan tidak boleh kosong.")

        thread = self.forum.get_thread_by_slug(slug)
        if not thread:
            raise NotFoundError("Thread tidak ditemukan.")

        row = self.forum.create_reply(thread["id"], author_profile_id, body)
        profile = self.profiles.get(author_profile_id) or {}
        logger.info("Forum reply posted", thread_id=thread["id"], reply_id=row["id"])
        return ForumReply(
            id=row["id"],
            body=row.get("body") or body,
            created_at=row.get("created_at"),
            author_name=profile.get("full_name"),
        )
