import logging
from datetime import datetime, timezone

from apscheduler.schedulers.blocking import BlockingScheduler

from market_mood.mood.core.orchestrator import MoodOrchestrator
from market_mood.mood.orchestration.jobs.run_mood_cycle import run as mood_job

log = logging.getLogger(__name__)

JOB_ID = "mood_cycle"


class MoodScheduler:
    """
    Fixed-interval driver for the mood cycle. The first cycle runs as soon
    as the scheduler starts; a cycle that overruns its slot makes the next
    tick wait instead of overlapping.
    """

    def __init__(self, orchestrator: MoodOrchestrator, interval_minutes: float = 5) -> None:
        self.orchestrator = orchestrator
        self.interval_minutes = interval_minutes
        self.scheduler = BlockingScheduler(timezone=timezone.utc)
        self.scheduler.add_job(
            mood_job,
            "interval",
            args=[orchestrator],
            minutes=interval_minutes,
            id=JOB_ID,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(timezone.utc),
        )

    def start(self) -> None:
        log.info("scheduler started, mood cycle every %s min", self.interval_minutes)
        self.scheduler.start()

    def shutdown(self) -> None:
        if self.scheduler.running:
            # a running cycle sees the stop event and winds down on its own
            self.scheduler.shutdown(wait=False)
            log.info("scheduler stopped")
