"""Process entry point for the yearly review job."""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Optional, Sequence

from app import obs
from app.domain.yearly_review.jobs import YearlyReviewJob
from app.infra import postgres
from app.infra.forum_repo import PostgresForumRepository
from app.infra.redis import redis_client
from app.infra.scheduler import JobScheduler
from app.settings import settings

_LOG = logging.getLogger(__name__)

JOB_ID = "yearly-review"


async def build_job() -> YearlyReviewJob:
	pool = await postgres.init_pool()
	repository = PostgresForumRepository(pool)
	await repository.ensure_schema()
	return YearlyReviewJob(repository=repository)


def schedule_yearly_review(scheduler: JobScheduler, job: YearlyReviewJob) -> None:
	"""Register the job on its cron schedule; the job gates itself on the date."""

	scheduler.schedule_cron(
		JOB_ID,
		job.run_once,
		hour=settings.yearly_review_run_hours_utc,
		minute=settings.yearly_review_run_minute_utc,
	)


async def serve(stop_event: Optional[asyncio.Event] = None) -> None:
	job = await build_job()
	scheduler = JobScheduler()
	schedule_yearly_review(scheduler, job)
	scheduler.start()
	_LOG.info("scheduler.started", extra={"jobs": scheduler.job_ids()})
	stop_event = stop_event or asyncio.Event()
	try:
		await stop_event.wait()
	finally:
		scheduler.shutdown()
		await postgres.close_pool()
		await redis_client.aclose()


async def run_once(*, force: bool = False, year: Optional[int] = None) -> str:
	job = await build_job()
	args: dict[str, object] = {"force": force}
	if year is not None:
		args["review_year"] = year
	try:
		outcome = await job.execute(args)
	finally:
		await postgres.close_pool()
		await redis_client.aclose()
	return outcome.value


def _parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(prog="yearly-review", description="Publish the forum's yearly review topic.")
	sub = parser.add_subparsers(dest="command", required=True)
	sub.add_parser("serve", help="run the scheduler until interrupted")
	once = sub.add_parser("run-once", help="invoke the job a single time")
	once.add_argument("--force", action="store_true", help="ignore the trigger window")
	once.add_argument("--year", type=int, default=None, help="review this year instead of last year")
	return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
	args = _parser().parse_args(argv)
	obs.init()
	if args.command == "serve":
		try:
			asyncio.run(serve())
		except KeyboardInterrupt:
			_LOG.info("scheduler.stopped")
		return 0
	outcome = asyncio.run(run_once(force=args.force, year=args.year))
	print(outcome)
	return 0


if __name__ == "__main__":
	raise SystemExit(main())
