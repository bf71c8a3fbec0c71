"""Custom exceptions for the yearly review job."""

from __future__ import annotations


class YearlyReviewError(Exception):
	"""Base class for yearly review errors."""

	detail: str = "yearly_review_error"

	def __init__(self, detail: str | None = None) -> None:
		super().__init__(detail or self.detail)
		if detail:
			self.detail = detail


class ConfigurationError(YearlyReviewError):
	"""Raised when the job configuration cannot be honoured."""

	detail = "invalid_configuration"


class InvalidReviewYear(YearlyReviewError):
	"""Raised when a requested review year is not a completed year."""

	detail = "invalid_review_year"


class AlreadyPublishedError(YearlyReviewError):
	"""Raised when a review marker already exists for the year."""

	detail = "already_published"

	def __init__(self, year: int) -> None:
		super().__init__(f"already_published:{year}")
		self.year = year
