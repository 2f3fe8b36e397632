"""Jobs module for scheduled background tasks."""

from cineco.jobs.scheduler import (
    add_job,
    get_scheduler,
    remove_job,
    setup_all_jobs,
    setup_session_sweeper_job,
    shutdown_scheduler,
    start_scheduler,
)
from cineco.jobs.session_sweeper import run_session_sweep

__all__ = [
    "add_job",
    "get_scheduler",
    "remove_job",
    "run_session_sweep",
    "setup_all_jobs",
    "setup_session_sweeper_job",
    "shutdown_scheduler",
    "start_scheduler",
]
