"""Periodic jobs run by Celery beat. Crontabs are UTC."""
from celery.schedules import crontab

beat_schedule = {
    # 05:00 club time (UTC+9): incremental Strava sync for every connected member.
    "sync-all-users": {
        "task": "tasks.sync_all_users",
        "schedule": crontab(hour=20, minute=0),
    },
}
