#!/usr/bin/env python3
"""Run the queued-import worker; extra command-line flags are passed through to Celery."""

import sys
import warnings

# Containers usually run as root
warnings.filterwarnings("ignore", category=RuntimeWarning, message=".*superuser privileges.*")

from sheetstore.workers.celery_app import celery_app  # noqa: E402

if __name__ == "__main__":
    celery_app.worker_main(
        [
            "worker",
            "--loglevel=info",
            "--queues=imports",
            "--pool=solo",
            "--without-mingle",
            "--without-gossip",
            *sys.argv[1:],
        ]
    )
