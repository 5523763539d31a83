"""Feed visibility and paging shared by posts and clips."""

from __future__ import annotations

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100


def visible_to_viewer(viewer_param: str, author_column: str, featured_column: str) -> str:
	"""SQL predicate: the viewer's own content, featured users, followed users, or connections."""
	return f"""(
		{author_column} = {viewer_param}
		OR {featured_column} = TRUE
		OR EXISTS (
			SELECT 1 FROM user_follows uf
			WHERE uf.follower_id = {viewer_param} AND uf.following_id = {author_column}
		)
		OR EXISTS (
			SELECT 1 FROM user_connections uc
			WHERE (uc.user_id_1 = {viewer_param} AND uc.user_id_2 = {author_column})
				OR (uc.user_id_2 = {viewer_param} AND uc.user_id_1 = {author_column})
		)
	)"""


def page_bounds(page: int | None, limit: int | None, *, default_limit: int = DEFAULT_PAGE_SIZE) -> tuple[int, int, int]:
	"""Return (page, limit, offset) with page >= 1 and 1 <= limit <= MAX_PAGE_SIZE."""
	page = max(1, int(page or 1))
	limit = max(1, min(int(limit or default_limit), MAX_PAGE_SIZE))
	return page, limit, (page - 1) * limit
