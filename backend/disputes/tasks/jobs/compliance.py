from flask import Flask

from disputes.services import get_services
from disputes.tasks.celery_app import celery_app

_flask_app: Flask | None = None


def _app() -> Flask:
    # One Flask app per worker process, created on first use
    global _flask_app
    if _flask_app is None:
        from disputes import create_app
        _flask_app = create_app()
    return _flask_app


@celery_app.task
def run_overdue_sweep() -> dict:
    app = _app()
    with app.app_context():
        return get_services(app).consequences.run_overdue_sweep()


@celery_app.task
def send_deadline_reminders() -> dict:
    app = _app()
    with app.app_context():
        return get_services(app).consequences.send_deadline_reminders()
