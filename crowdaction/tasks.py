"""
Celery tasks for donation processing.

Usage:
    from crowdaction.tasks import charge_source

    # Queue a charge for a source Stripe reported chargeable
    charge_source.delay(source_id)

Run a worker with:
    celery -A celery_worker worker --loglevel=INFO
"""

import logging

from celery import shared_task

from crowdaction.errors import GatewayTransientError

logger = logging.getLogger(__name__)

MAX_CHARGE_RETRIES = 10


@shared_task(
    bind=True,
    autoretry_for=(GatewayTransientError,),
    retry_backoff=True,
    retry_backoff_max=600,
    retry_kwargs={"max_retries": MAX_CHARGE_RETRIES},
    acks_late=True,
)
def charge_source(self, source_id: str) -> str:
    """Charge a chargeable source out of band.

    Delivery is at-least-once; charge_service.charge re-checks the source
    status, so a duplicate run fails with StateConflictError instead of
    charging twice. Only transient gateway failures are retried.
    """
    from crowdaction.services.charge_service import charge

    logger.info(
        f"Running charge job for source {source_id} (attempt {self.request.retries + 1})"
    )
    return charge(source_id).id
