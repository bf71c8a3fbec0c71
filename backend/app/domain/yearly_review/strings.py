"""Localized strings used when rendering a review."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from app.domain.yearly_review.exceptions import ConfigurationError
from app.domain.yearly_review.models import LeaderboardKey


@dataclass(frozen=True, slots=True)
class ReviewStrings:
	"""Typed lookup table for one locale."""

	title_template: str
	intro_template: str
	section_labels: Mapping[LeaderboardKey, str]
	metric_labels: Mapping[LeaderboardKey, str]
	user_column: str
	topic_column: str
	more_template: str
	badge_template: str

	def title(self, year: int) -> str:
		return self.title_template.format(year=year)

	def intro(self, year: int) -> str:
		return self.intro_template.format(year=year)

	def section(self, key: LeaderboardKey) -> str:
		return self.section_labels[key]

	def metric(self, key: LeaderboardKey) -> str:
		return self.metric_labels[key]

	def more(self, count: int) -> str:
		return self.more_template.format(count=count)

	def badge_heading(self, badge_name: str) -> str:
		return self.badge_template.format(badge=badge_name)


_EN = ReviewStrings(
	title_template="Year in review: {year}",
	intro_template="Here is a look back at the people and conversations that shaped {year}.",
	section_labels={
		LeaderboardKey.TOPICS_CREATED: "Most topics created",
		LeaderboardKey.REPLIES_CREATED: "Most replies",
		LeaderboardKey.LIKES_GIVEN: "Most likes given",
		LeaderboardKey.LIKES_RECEIVED: "Most likes received",
		LeaderboardKey.DAYS_VISITED: "Most days visited",
		LeaderboardKey.TIME_READ: "Most time spent reading",
		LeaderboardKey.MOST_LIKED_TOPICS: "Most liked topics",
		LeaderboardKey.MOST_REPLIED_TOPICS: "Most replied to topics",
		LeaderboardKey.FEATURED_BADGE: "Featured badge",
	},
	metric_labels={
		LeaderboardKey.TOPICS_CREATED: "Topics",
		LeaderboardKey.REPLIES_CREATED: "Replies",
		LeaderboardKey.LIKES_GIVEN: "Likes",
		LeaderboardKey.LIKES_RECEIVED: "Likes",
		LeaderboardKey.DAYS_VISITED: "Days",
		LeaderboardKey.TIME_READ: "Hours",
		LeaderboardKey.MOST_LIKED_TOPICS: "Likes",
		LeaderboardKey.MOST_REPLIED_TOPICS: "Replies",
		LeaderboardKey.FEATURED_BADGE: "Granted",
	},
	user_column="User",
	topic_column="Topic",
	more_template="And {count} more",
	badge_template="Users granted the {badge} badge",
)

_FR = ReviewStrings(
	title_template="Bilan de l'année : {year}",
	intro_template="Retour sur les personnes et les discussions qui ont marqué {year}.",
	section_labels={
		LeaderboardKey.TOPICS_CREATED: "Le plus de sujets créés",
		LeaderboardKey.REPLIES_CREATED: "Le plus de réponses",
		LeaderboardKey.LIKES_GIVEN: "Le plus de J'aime donnés",
		LeaderboardKey.LIKES_RECEIVED: "Le plus de J'aime reçus",
		LeaderboardKey.DAYS_VISITED: "Le plus de jours de visite",
		LeaderboardKey.TIME_READ: "Le plus de temps de lecture",
		LeaderboardKey.MOST_LIKED_TOPICS: "Sujets les plus appréciés",
		LeaderboardKey.MOST_REPLIED_TOPICS: "Sujets avec le plus de réponses",
		LeaderboardKey.FEATURED_BADGE: "Badge à l'honneur",
	},
	metric_labels={
		LeaderboardKey.TOPICS_CREATED: "Sujets",
		LeaderboardKey.REPLIES_CREATED: "Réponses",
		LeaderboardKey.LIKES_GIVEN: "J'aime",
		LeaderboardKey.LIKES_RECEIVED: "J'aime",
		LeaderboardKey.DAYS_VISITED: "Jours",
		LeaderboardKey.TIME_READ: "Heures",
		LeaderboardKey.MOST_LIKED_TOPICS: "J'aime",
		LeaderboardKey.MOST_REPLIED_TOPICS: "Réponses",
		LeaderboardKey.FEATURED_BADGE: "Attribué",
	},
	user_column="Utilisateur",
	topic_column="Sujet",
	more_template="Et {count} de plus",
	badge_template="Utilisateurs ayant reçu le badge {badge}",
)

STRINGS: Mapping[str, ReviewStrings] = {"en": _EN, "fr": _FR}


def get_strings(locale: str) -> ReviewStrings:
	try:
		return STRINGS[locale]
	except KeyError as exc:
		raise ConfigurationError(f"unsupported_locale:{locale}") from exc


__all__ = ["ReviewStrings", "STRINGS", "get_strings"]
