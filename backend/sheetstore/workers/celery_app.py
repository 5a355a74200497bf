"""Celery application factory for queued imports."""

import ssl

from celery import Celery

from sheetstore.core.config import get_settings
from sheetstore.core.logging import configure_logging
from sheetstore.utils.redis_client import to_tls_url

settings = get_settings()
configure_logging(settings.log_level)

broker_url = to_tls_url(settings.celery_broker_url or settings.redis_url)
backend_url = to_tls_url(settings.celery_result_url or settings.redis_url)
is_ssl = broker_url.startswith("rediss://") or backend_url.startswith("rediss://")

# Celery's Redis backend reads ssl_cert_reqs from the URL during initialization
if is_ssl:
    ssl_param = "ssl_cert_reqs=none"
    if "ssl_cert_reqs" not in broker_url:
        separator = "&" if "?" in broker_url else "?"
        broker_url = f"{broker_url}{separator}{ssl_param}"
    if "ssl_cert_reqs" not in backend_url:
        separator = "&" if "?" in backend_url else "?"
        backend_url = f"{backend_url}{separator}{ssl_param}"

celery_app = Celery(
    "sheetstore",
    broker=broker_url,
    backend=backend_url,
    include=["sheetstore.workers.tasks.import_file"],
)

celery_config = {
    "task_serializer": "json",
    "accept_content": ["json"],
    "result_serializer": "json",
    "timezone": "UTC",
    "enable_utc": True,
    "task_acks_late": True,  # Acknowledge after task completion
    "task_reject_on_worker_lost": True,  # Re-queue if worker dies
    "worker_prefetch_multiplier": 1,  # Fair task distribution
    "task_time_limit": 3600,  # 1 hour hard limit
    "task_soft_time_limit": 3300,  # 55 min soft limit
    "result_expires": 3600,
    "broker_connection_retry_on_startup": True,
    "worker_hijack_root_logger": False,
    "task_default_queue": "imports",
    "task_routes": {"sheetstore.workers.tasks.import_file": {"queue": "imports"}},
}

if is_ssl:
    ssl_dict = {"ssl_cert_reqs": ssl.CERT_NONE}
    celery_config["broker_use_ssl"] = ssl_dict
    celery_config["redis_backend_use_ssl"] = ssl_dict

celery_app.conf.update(celery_config)
