"""Mutation service: validates invariants, then writes through the store.

Enforced before writing:

* email syntax (``create_user``, ``login``)
* email uniqueness (``create_user``)
* credential match (``login``, through a :class:`CredentialVerifier`)
* existence of both follow participants (``follow``)

Reference fields on posts and comments are *not* checked: creating a post
or comment always succeeds, even if the ids it points at do not exist.
All failures are raised as :mod:`musty.errors` types and never caught here.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from datetime import datetime
from datetime import timezone

from musty.audit import AuditEvent
from musty.audit import AuditEventType
from musty.audit import AuditLogger
from musty.auth import CredentialVerifier
from musty.auth import PlainCredentialVerifier
from musty.config import DisplayConfig
from musty.engine.resolver import GraphResolver
from musty.errors import AuthError
from musty.errors import ConflictError
from musty.errors import NotFoundError
from musty.errors import ValidationError
from musty.models.entities import Comment
from musty.models.entities import EntityKind
from musty.models.entities import Post
from musty.models.entities import Topic
from musty.models.entities import User
from musty.models.schemas import PostQuery
from musty.observability import timed
from musty.store.base import EntityStore

logger = logging.getLogger(__name__)

# local@domain.tld, no whitespace, exactly one "@"
_EMAIL_RE = re.compile(r"[^@\s]+@[^@\s.]+(\.[^@\s.]+)+")


def is_email(value: str) -> bool:
    return bool(_EMAIL_RE.fullmatch(value))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MutationService:
    """Entity creation and linking operations."""

    def __init__(
        self,
        store: EntityStore,
        *,
        resolver: GraphResolver | None = None,
        verifier: CredentialVerifier | None = None,
        audit_logger: AuditLogger | None = None,
        display: DisplayConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._resolver = resolver or GraphResolver(store)
        self._verifier = verifier or PlainCredentialVerifier()
        self._audit = audit_logger
        self._display = display or DisplayConfig()
        self._clock = clock or _utcnow

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def create_user(
        self,
        name: str,
        email: str,
        password: str,
        pronoun: str | None = None,
    ) -> User:
        """Create a user with empty follow lists.

        Raises:
            ValidationError: *email* is not an address.
            ConflictError: a user with *email* already exists.
        """
        with timed("mutation.create_user"):
            self._require_email(email)
            existing = await self._store.find(EntityKind.user, {"email": email})
            if existing:
                raise ConflictError("User already exists")

            now = self._clock()
            user = await self._store.create(
                EntityKind.user,
                {
                    "name": name,
                    "email": email,
                    "password": password,
                    "pronoun": pronoun,
                    "date_joined": now,
                    "joined": now.strftime(self._display.joined_format),
                    "followers": [],
                    "following": [],
                },
            )
            logger.info("Created user %s", user.id)
            await self._log(AuditEventType.USER_CREATED, user_id=user.id)
            return user

    async def login(self, email: str, password: str) -> User:
        """Return the user whose stored credential matches *password*.

        Raises:
            ValidationError: *email* is not an address.
            NotFoundError: no user has *email*.
            AuthError: the credential does not match.
        """
        with timed("mutation.login"):
            self._require_email(email)
            users = await self._store.find(EntityKind.user, {"email": email})
            if not users:
                raise NotFoundError("User not found")
            user = users[0]
            if not self._verifier.matches(user.password, password):
                logger.info("Rejected login for user %s", user.id)
                raise AuthError("Password is incorrect")
            await self._log(AuditEventType.LOGIN, user_id=user.id)
            return user

    async def follow(self, user_id: str, follower_id: str) -> bool:
        """Append *follower_id* to the followers of *user_id*.

        Only the target's ``followers`` list changes; the follower's
        ``following`` list is left as it is. Repeating the call appends
        the id again.

        Raises:
            NotFoundError: either id does not resolve to a user.
        """
        with timed("mutation.follow"):
            user = await self._store.get(EntityKind.user, user_id)
            follower = await self._store.get(EntityKind.user, follower_id)
            if user is None or follower is None:
                raise NotFoundError("User not found")
            user.followers.append(follower.id)
            await self._store.update(user)
            logger.info("User %s now followed by %s", user.id, follower.id)
            await self._log(
                AuditEventType.FOLLOW, user_id=user.id, follower_id=follower.id
            )
            return True

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    async def create_topic(self, title: str | None = None) -> Topic:
        with timed("mutation.create_topic"):
            topic = await self._store.create(EntityKind.topic, {"title": title})
            logger.info("Created topic %s", topic.id)
            await self._log(AuditEventType.TOPIC_CREATED, topic_id=topic.id)
            return topic

    async def create_post(
        self, caption: str, posted_by_id: str, topic_id: str
    ) -> PostQuery:
        """Create a post and return it composed with its relations."""
        with timed("mutation.create_post"):
            post: Post = await self._store.create(
                EntityKind.post,
                {
                    "caption": caption,
                    "posted_by_id": posted_by_id,
                    "topic_id": topic_id,
                    "date_posted": self._clock().strftime(
                        self._display.posted_format
                    ),
                },
            )
            logger.info("Created post %s by %s", post.id, posted_by_id)
            await self._log(
                AuditEventType.POST_CREATED,
                post_id=post.id,
                posted_by_id=posted_by_id,
                topic_id=topic_id,
            )
            async with self._resolver.resolution_pass() as loader:
                return await self._resolver.compose_post(loader, post)

    async def create_comment(
        self, comment: str, commented_by_id: str, post_id: str
    ) -> Comment:
        with timed("mutation.create_comment"):
            created = await self._store.create(
                EntityKind.comment,
                {
                    "comment": comment,
                    "commented_by_id": commented_by_id,
                    "post_id": post_id,
                    "date_commented": self._clock(),
                },
            )
            logger.info("Created comment %s on post %s", created.id, post_id)
            await self._log(
                AuditEventType.COMMENT_CREATED,
                comment_id=created.id,
                post_id=post_id,
            )
            return created

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _require_email(email: str) -> None:
        if not is_email(email):
            raise ValidationError("Invalid email")

    async def _log(self, event_type: AuditEventType, **payload: object) -> None:
        if self._audit is None:
            return
        await self._audit.log(AuditEvent(event_type=event_type, payload=payload))
