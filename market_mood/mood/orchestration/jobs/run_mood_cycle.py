import logging

from market_mood.mood.core.orchestrator import MoodOrchestrator

log = logging.getLogger(__name__)


def run(orchestrator: MoodOrchestrator):
    """Scheduler entry: one cycle, never raising into the scheduler."""
    if orchestrator.stop_event.is_set():
        log.info("engine stopping, cycle not started")
        return None
    try:
        report = orchestrator.run_cycle()
        log.info("mood cycle executed OK. tokens: %d, dispatched: %d", len(report.analyses), len(report.results))
        return report
    except Exception as e:
        log.exception("mood cycle failed: %s", e)
        return None
