"""
Marketplace Celery Tasks

Scheduled sweeps that expire stale offers and unpaid orders. Both call the
service-layer primitives, which take the same listing locks and transactions
as the request path.
"""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, queue="marketplace_tasks")
def expire_stale_offers_task(self):
    """
    Periodic task moving pending offers past ``expires_at`` to ``expired``.

    Returns:
        dict: ``{"success": bool, "expired": int}``
    """
    from marketplace.services import NegotiationService

    try:
        result = NegotiationService().expire_stale_offers()
    except Exception as e:
        logger.error(f"Offer expiry sweep failed: {e}", exc_info=True)
        raise self.retry(exc=e, countdown=60 * (2**self.request.retries))

    if not result.success:
        logger.error(f"Offer expiry sweep failed: {result.error_detail}")
        return {"success": False, "errors": result.errors}

    logger.info(f"Offer expiry sweep completed: {result.data['expired']} offers expired")
    return {"success": True, "expired": result.data["expired"]}


@shared_task(bind=True, max_retries=3, queue="marketplace_tasks")
def expire_unpaid_orders_task(self):
    """
    Periodic task cancelling orders whose payment deadline elapsed unpaid.

    Returns:
        dict: ``{"success": bool, "expired": int}``
    """
    from marketplace.services import FulfillmentService

    try:
        result = FulfillmentService().expire_unpaid_orders()
    except Exception as e:
        logger.error(f"Order expiry sweep failed: {e}", exc_info=True)
        raise self.retry(exc=e, countdown=60 * (2**self.request.retries))

    if not result.success:
        logger.error(f"Order expiry sweep failed: {result.error_detail}")
        return {"success": False, "errors": result.errors}

    logger.info(f"Order expiry sweep completed: {result.data['expired']} orders cancelled")
    return {"success": True, "expired": result.data["expired"]}
