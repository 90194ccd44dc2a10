"""
Celery tasks for background processing.
"""

import logging
from typing import Dict, Optional

from asgiref.sync import async_to_sync
from celery import shared_task

from apps.pricing.domain.services import PriceUpdateService
from apps.pricing.infrastructure.persistence.models import TriggerSource
from core.exceptions import UpdateInProgressError

logger = logging.getLogger(__name__)


@shared_task(name="update_daily_prices")
def update_daily_prices(trigger_source: str = TriggerSource.CRON, triggered_by: Optional[int] = None) -> Dict:
    """
    Regenerate every active commodity's price.

    Scheduled daily by Celery beat with trigger_source="cron"; operators
    dispatch it with "manual". A cycle that is already running is reported,
    not retried. Rate resolution failures propagate so the task is marked
    failed.

    Returns:
        Dict with operation results
    """
    service = PriceUpdateService()

    try:
        summary = async_to_sync(service.update_daily_prices)(trigger_source, triggered_by)
    except UpdateInProgressError as e:
        logger.warning(f"Skipping {trigger_source} price update: {e}")
        return {
            "success": False,
            "message": str(e),
            "updated": 0,
        }

    return summary.to_dict()
