"""Celery worker entry point.

Usage:
    celery -A celery_worker worker --loglevel=INFO
"""

from dotenv import load_dotenv

load_dotenv()

from crowdaction import create_app  # noqa: E402

flask_app = create_app()
celery_app = flask_app.extensions["celery"]
