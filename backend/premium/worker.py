import logging
from datetime import timedelta
from typing import Any

from arq import cron
from arq.connections import RedisSettings

from premium.core.config import settings
from premium.core.database import SessionLocal
from premium.models.shared import utc_now
from premium.repositories.membership_repository import MembershipRepository
from premium.services.payment_service import PaymentService
from premium.services.paystack import PaystackClient

logger = logging.getLogger(__name__)

redis_settings = RedisSettings.from_dsn(settings.REDIS_URL)


async def startup(ctx: dict[str, Any]) -> None:
    ctx["paystack"] = PaystackClient.from_settings(settings)


async def shutdown(ctx: dict[str, Any]) -> None:
    client = ctx.pop("paystack", None)
    if client is not None:
        client.close()


async def expire_memberships_task(ctx: dict[str, Any]) -> int:
    """Background task: downgrade premium memberships whose expiry has passed.

    Reads already treat expired rows as basic; this keeps the stored tier
    in line. Runs hourly.
    """
    db = SessionLocal()
    try:
        count = MembershipRepository(db).expire_lapsed(utc_now())
        if count > 0:
            logger.info("Expired %d premium memberships", count)
        return count
    finally:
        db.close()


async def reconcile_pending_payments_task(ctx: dict[str, Any]) -> int:
    """Background task: re-verify payments still pending after the grace period.

    Catches members who paid but never returned to the site and whose
    webhook was lost. Runs every 10 minutes.
    """
    client = ctx.get("paystack")
    if client is None:
        logger.warning("Paystack client not configured, skipping reconciliation")
        return 0

    db = SessionLocal()
    try:
        service = PaymentService(db, client, settings)
        count = service.reconcile_pending(
            older_than=timedelta(minutes=settings.PENDING_RECONCILE_AFTER_MINUTES)
        )
        if count > 0:
            logger.info("Activated %d pending payments during reconciliation", count)
        return count
    finally:
        db.close()


class WorkerSettings:
    functions = [
        expire_memberships_task,
        reconcile_pending_payments_task,
    ]
    cron_jobs = [
        cron(expire_memberships_task, minute={0}),  # hourly
        cron(reconcile_pending_payments_task, minute={0, 10, 20, 30, 40, 50}),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = redis_settings
