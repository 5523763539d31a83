"""@mention extraction and resolution for posts, comments and clips."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Sequence

import asyncpg

from app.domain.notifications import service as notifications
from app.domain.notifications.models import NotificationType
from app.infra.postgres import get_pool
from app.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

MENTION_PATTERN = re.compile(r"@([^\s@\n]+(?:\s+[^\s@\n]+)*)")

# Longest full name (in words) tried when a mention runs into trailing text
MAX_NAME_WORDS = 5

_CONTEXT_LABELS = {
	"post": "a post",
	"comment": "a comment",
	"clip": "a clip",
}


@dataclass(slots=True)
class MentionedUser:
	id: str
	full_name: str


def extract_mentions(text: str | None) -> List[str]:
	"""Mentions in order of first appearance, stripped and de-duplicated."""
	if not text:
		return []
	seen: Dict[str, None] = {}
	for match in MENTION_PATTERN.finditer(text):
		mention = match.group(1).strip()
		if mention:
			seen.setdefault(mention, None)
	return list(seen)


def _normalise(name: str) -> str:
	return " ".join(name.split()).lower()


def _candidates(mention: str) -> List[str]:
	"""Word prefixes of a mention, longest first ("a b c" -> "a b c", "a b", "a")."""
	words = _normalise(mention).split(" ")
	upper = min(len(words), MAX_NAME_WORDS)
	return [" ".join(words[:size]) for size in range(upper, 0, -1)]


async def resolve_mentioned_users(
	conn: asyncpg.Connection,
	actor_id: str,
	names: Sequence[str],
) -> List[MentionedUser]:
	"""Users named by the mentions who follow, are followed by, or are connected to the actor.

	Each mention resolves to the longest word prefix that matches a related
	user's full name, so "@Jane Doe nice game" still reaches Jane Doe.
	"""
	if not names:
		return []
	per_mention = [_candidates(name) for name in names]
	lookup = sorted({candidate for options in per_mention for candidate in options})
	rows = await conn.fetch(
		"""
		SELECT DISTINCT u.id, u.full_name, LOWER(TRIM(u.full_name)) AS normalized
		FROM users u
		WHERE LOWER(TRIM(u.full_name)) = ANY($2::text[])
			AND u.id <> $1
			AND (
				EXISTS (
					SELECT 1 FROM user_follows uf
					WHERE (uf.follower_id = u.id AND uf.following_id = $1)
						OR (uf.follower_id = $1 AND uf.following_id = u.id)
				)
				OR EXISTS (
					SELECT 1 FROM user_connections uc
					WHERE (uc.user_id_1 = $1 AND uc.user_id_2 = u.id)
						OR (uc.user_id_1 = u.id AND uc.user_id_2 = $1)
				)
			)
		""",
		actor_id,
		lookup,
	)
	by_name: Dict[str, List[asyncpg.Record]] = {}
	for row in rows:
		by_name.setdefault(_normalise(row["normalized"] or ""), []).append(row)

	resolved: Dict[str, MentionedUser] = {}
	for options in per_mention:
		for candidate in options:
			matches = by_name.get(candidate)
			if matches:
				for row in matches:
					resolved.setdefault(str(row["id"]), MentionedUser(id=str(row["id"]), full_name=row["full_name"]))
				break
	return list(resolved.values())


async def notify_mentions(
	*,
	actor_id: str,
	actor_name: str,
	text: str | None,
	entity_type: str,
	entity_id: str,
	context: str,
	exclude: Sequence[str] = (),
) -> List[MentionedUser]:
	"""Send a mention notification to every resolved user; failures are logged, never raised."""
	names = extract_mentions(text)
	if not names:
		return []
	try:
		pool = await get_pool()
		async with pool.acquire() as conn:
			users = await resolve_mentioned_users(conn, actor_id, names)
	except Exception:
		logger.exception("mention_lookup_failed", extra={"entity_type": entity_type})
		return []
	skip = {str(user_id) for user_id in exclude}
	targets = [user for user in users if user.id not in skip]
	obs_metrics.inc_mentions(entity_type, len(targets))
	label = _CONTEXT_LABELS.get(context, f"a {context}")
	for user in targets:
		await notifications.notify(
			recipient_id=user.id,
			actor_id=actor_id,
			actor_name=actor_name,
			kind=NotificationType.MENTION.value,
			entity_type=entity_type,
			entity_id=entity_id,
			message=f"{actor_name} mentioned you in {label}",
		)
	return targets
