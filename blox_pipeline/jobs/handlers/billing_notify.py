"""
billing-notify: in-app notification plus a best-effort email per billing event.
"""

from dataclasses import dataclass
from typing import Any

from blox_pipeline.infrastructure.observability.logging import get_logger
from blox_pipeline.jobs.errors import TransientExternalError
from blox_pipeline.jobs.handlers.base import JobHandlerBase
from blox_pipeline.jobs.payloads import BillingNotifyPayload
from blox_pipeline.jobs.queue import JobEnvelope
from blox_pipeline.models.domain.pipeline_domain import Topic
from blox_pipeline.repositories.user_repository import UserRepository
from blox_pipeline.services.mail_service import mail_service, render_billing_email

logger = get_logger(__name__)

DEFAULT_TRIAL_DAYS = 3


@dataclass(slots=True)
class BillingMessage:
    title: str
    body: str


def billing_message(event: str, tier: str | None, days_remaining: int | None) -> BillingMessage:
    days = DEFAULT_TRIAL_DAYS if days_remaining is None else days_remaining
    templates = {
        "renewal_success": BillingMessage(
            "Subscription renewed successfully",
            f"Your {tier or 'plan'} subscription has been renewed.",
        ),
        "renewal_failed": BillingMessage(
            "Subscription renewal failed",
            "We could not renew your subscription. Please update your payment method.",
        ),
        "trial_ending": BillingMessage(
            f"Trial ending in {days} days",
            "Upgrade now to keep access to premium features.",
        ),
        "cancelled": BillingMessage(
            "Subscription cancelled",
            "Your subscription has been cancelled. You'll retain access until period end.",
        ),
        "upgraded": BillingMessage(
            f"Welcome to {tier or 'your new plan'}!",
            "Your plan has been upgraded. Enjoy all the new features!",
        ),
    }
    return templates[event]


class BillingNotifyHandler(JobHandlerBase):
    topic = Topic.BILLING_NOTIFY

    def __init__(self, *, users=UserRepository, mailer=None, **kwargs):
        super().__init__(**kwargs)
        self.users = users
        self.mailer = mailer or mail_service

    async def __call__(self, job: JobEnvelope) -> dict[str, Any]:
        payload: BillingNotifyPayload = self.parse(job)

        user = await self.users.load_contact(payload.user_id)
        if user is None:
            logger.info("Billing notice for unknown user skipped", user_id=payload.user_id)
            return {"skipped": True, "reason": "user not found"}

        message = billing_message(payload.event, payload.tier, payload.days_remaining)
        await self.notifications.create(
            user_id=payload.user_id,
            type=f"billing_{payload.event}",
            title=message.title,
            payload={
                "event": payload.event,
                "tier": payload.tier,
                "daysRemaining": payload.days_remaining,
            },
            source_job_id=job.id,
        )

        emailed = True
        try:
            await self.mailer.send(
                user.email,
                message.title,
                render_billing_email(message.title, message.body, user.full_name),
            )
        except TransientExternalError as e:
            emailed = False
            logger.warning("Billing email failed", user_id=payload.user_id, error=str(e))

        return {"userId": payload.user_id, "event": payload.event, "notified": True, "emailed": emailed}
