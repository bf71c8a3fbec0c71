"""Render a review report into the title and body of the published post."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from app.domain.yearly_review.models import (
	Leaderboard,
	LeaderboardKey,
	LeaderboardRow,
	RenderedReview,
	ReviewReport,
)
from app.domain.yearly_review.strings import ReviewStrings, get_strings

_TEMPLATE_NAME = "review.html.j2"


def _get_template_env() -> Environment:
	"""Create Jinja2 environment with templates directory."""
	templates_dir = Path(__file__).parent / "templates"
	return Environment(
		loader=FileSystemLoader(str(templates_dir)),
		autoescape=True,
		trim_blocks=True,
		lstrip_blocks=True,
		undefined=StrictUndefined,
	)


def _format_hours(seconds: int) -> str:
	"""Format reading time as hours with one decimal."""
	return f"{seconds / 3600:.1f}"


def _row_context(key: LeaderboardKey, row: LeaderboardRow) -> Dict[str, Any]:
	metric: object = row.metric
	if key is LeaderboardKey.TIME_READ:
		metric = _format_hours(row.metric)
	return {
		"rank": row.rank,
		"subject_id": row.subject_id,
		"username": row.username,
		"metric": metric,
		"title": row.title,
		"slug": row.slug,
	}


def _section_context(board: Leaderboard, report: ReviewReport, strings: ReviewStrings) -> Dict[str, Any]:
	key = board.key
	if key is LeaderboardKey.FEATURED_BADGE:
		kind = "badge"
	elif key.is_topic_board:
		kind = "topic"
	else:
		kind = "user"
	label = strings.section(key)
	more_url = None
	if kind == "badge" and report.badge is not None:
		label = strings.badge_heading(report.badge.name)
		more_url = f"/badges/{report.badge.id}/{report.badge.slug}"
	return {
		"key": key.value,
		"kind": kind,
		"label": label,
		"subject_label": strings.topic_column if kind == "topic" else strings.user_column,
		"metric_label": strings.metric(key),
		"rows": [_row_context(key, row) for row in board.rows],
		"more": strings.more(board.overflow) if board.overflow else None,
		"more_url": more_url,
	}


class ReviewRenderer:
	"""Turns a :class:`ReviewReport` into post title and raw body."""

	def __init__(self, env: Environment | None = None) -> None:
		self._env = env or _get_template_env()

	def context(self, report: ReviewReport, strings: ReviewStrings) -> Dict[str, Any]:
		year = report.period.year
		return {
			"year": year,
			"intro": strings.intro(year),
			"sections": [_section_context(board, report, strings) for board in report.leaderboards],
		}

	def render(self, report: ReviewReport, *, locale: str = "en") -> RenderedReview:
		strings = get_strings(locale)
		template = self._env.get_template(_TEMPLATE_NAME)
		raw = template.render(**self.context(report, strings))
		return RenderedReview(title=strings.title(report.period.year), raw=raw.strip() + "\n")


__all__ = ["ReviewRenderer"]
