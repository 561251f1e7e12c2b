"""
Background scheduler for the weekly predictor

Runs the auto-score tick with APScheduler at fixed UTC hours (07:00 and
22:00 by default) so results are picked up and weeks scored without an
admin having to trigger anything.
"""

import atexit
import logging
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from predictor import db
from predictor.invocation import ScheduledTrusted

logger = logging.getLogger(__name__)

AUTO_SCORE_JOB_ID = "auto_score"


class SchedulerService:
    """Manages the background auto-score job"""

    def __init__(self, app=None):
        self.scheduler = None
        self.app = app
        self.is_running = False
        self.run_stats = self._empty_stats()

        if app:
            self.init_app(app)

    @staticmethod
    def _empty_stats():
        return {
            "last_run": None,
            "total_runs": 0,
            "successful_runs": 0,
            "failed_runs": 0,
            "last_error": None,
            "results_set": 0,
            "weeks_scored": 0,
            "last_report": None,
        }

    def init_app(self, app):
        """Initialize scheduler with Flask app"""
        self.app = app
        self.scheduler = BackgroundScheduler(daemon=True, timezone="UTC")

        # Register shutdown
        atexit.register(self.shutdown)

        # Start scheduler if enabled
        if app.config.get("SCHEDULER_ENABLED", True):
            self.start()

    def start(self):
        """Start the background scheduler"""
        if self.is_running:
            return
        if self.scheduler is None:
            raise RuntimeError("Scheduler has not been initialised with an app")

        try:
            self.scheduler.remove_all_jobs()
            self._add_core_jobs()
            self.scheduler.start()
            self.is_running = True

            logger.info("Scheduler started successfully")

        except Exception as e:
            logger.error(f"Failed to start scheduler: {e}")
            raise

    def stop(self):
        """Stop the background scheduler"""
        if not self.is_running:
            return

        try:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Scheduler stopped")

        except Exception as e:
            logger.error(f"Error stopping scheduler: {e}")

    def shutdown(self):
        """Graceful shutdown"""
        self.stop()

    def _add_core_jobs(self):
        hours = self.app.config.get("AUTO_SCORE_CRON_HOURS", "7,22")
        self.scheduler.add_job(
            func=self._auto_score,
            trigger=CronTrigger(hour=hours, minute=0),
            id=AUTO_SCORE_JOB_ID,
            name="Auto-score latest week",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=600,
        )

    def _auto_score(self, trigger="scheduler", context=None):
        """Scheduled auto-score tick, or an admin run when ``context`` is given"""
        from predictor.services.auto_score import auto_score_tick

        with self.app.app_context():
            try:
                logger.info("Running scheduled auto-score...")
                report = auto_score_tick(context or ScheduledTrusted(trigger=trigger))
                self._update_stats(True, report)
                logger.info(
                    f"Auto-score finished: week={report.week} "
                    f"resultsSet={report.results_set} weekScored={report.week_scored}"
                )
                return report

            except Exception as e:
                db.session.rollback()
                self._update_stats(False, error=str(e))
                logger.error(f"Error in scheduled auto-score: {e}", exc_info=True)
                return None

    def _update_stats(self, success, report=None, error=None):
        """Update run statistics"""
        self.run_stats["last_run"] = datetime.now(timezone.utc).isoformat()
        self.run_stats["total_runs"] += 1

        if success:
            self.run_stats["successful_runs"] += 1
            self.run_stats["last_error"] = None
            if report is not None:
                self.run_stats["results_set"] += report.results_set
                self.run_stats["weeks_scored"] += 1 if report.week_scored else 0
                self.run_stats["last_report"] = {
                    "week": report.week,
                    "resultsSet": report.results_set,
                    "weekScored": report.week_scored,
                    "message": report.message,
                }
        else:
            self.run_stats["failed_runs"] += 1
            self.run_stats["last_error"] = error

    def get_status(self):
        """Get scheduler status information"""
        jobs = []
        if self.scheduler and self.is_running:
            for job in self.scheduler.get_jobs():
                next_run = job.next_run_time
                jobs.append(
                    {
                        "id": job.id,
                        "name": job.name,
                        "next_run": next_run.isoformat() if next_run else None,
                        "trigger": str(job.trigger),
                    }
                )

        return {"is_running": self.is_running, "jobs": jobs, "stats": self.run_stats}

    def force_run(self, context=None):
        """
        Run the auto-score job now, outside its schedule.

        ``context`` is the caller's invocation context; without one the run is
        recorded as coming from the scheduler.
        """
        if self.app is None:
            return False, "Scheduler has not been initialised with an app"
        report = self._auto_score(context=context)
        if report is None:
            return False, f"Manual auto-score failed: {self.run_stats['last_error']}"
        return True, "Manual auto-score completed"

    def pause_job(self, job_id=AUTO_SCORE_JOB_ID):
        """Pause a specific job"""
        if not self.is_running:
            return False, "Scheduler is not running"
        try:
            self.scheduler.pause_job(job_id)
            return True, f"Job {job_id} paused"
        except Exception as e:
            return False, f"Failed to pause job: {e}"

    def resume_job(self, job_id=AUTO_SCORE_JOB_ID):
        """Resume a specific job"""
        if not self.is_running:
            return False, "Scheduler is not running"
        try:
            self.scheduler.resume_job(job_id)
            return True, f"Job {job_id} resumed"
        except Exception as e:
            return False, f"Failed to resume job: {e}"


# Global scheduler instance
scheduler_service = SchedulerService()
