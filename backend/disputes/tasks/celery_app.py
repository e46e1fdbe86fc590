import os
from celery import Celery
from celery.schedules import crontab


def make_celery() -> Celery:
    broker = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    backend = os.getenv("CELERY_RESULT_BACKEND", broker)
    app = Celery("disputes", broker=broker, backend=backend, include=[
        "disputes.tasks.jobs.compliance",
    ])
    app.conf.update(
        task_track_started=True,
        timezone=os.getenv("CELERY_TIMEZONE", "UTC"),
        beat_schedule={
            # Daily at 02:00: escalation ladder first, then the 24h reminders
            "compliance-overdue-sweep": {
                "task": "disputes.tasks.jobs.compliance.run_overdue_sweep",
                "schedule": crontab(hour=2, minute=0),
            },
            "compliance-deadline-reminders": {
                "task": "disputes.tasks.jobs.compliance.send_deadline_reminders",
                "schedule": crontab(hour=2, minute=5),
            },
        },
    )
    return app

celery_app = make_celery()
