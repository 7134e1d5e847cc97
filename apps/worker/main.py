"""
Worker process entry point.

    celery -A main worker --beat --loglevel=info

Runs from apps/worker/ and loads the API code (models, services, tasks) from
API_DIR, by default the sibling apps/api/ directory.
"""
import os
import sys

API_DIR = os.environ.get(
    "API_DIR",
    os.path.abspath(os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "api")),
)
if API_DIR not in sys.path:
    sys.path.insert(0, API_DIR)

from core.logging import setup_logging  # noqa: E402
from tasks import celery_app  # noqa: E402

setup_logging(process_name="worker")

app = celery_app


@celery_app.task(name="worker.ping")
def ping():
    """Liveness probe: `celery -A main call worker.ping`."""
    return {"status": "ok"}
