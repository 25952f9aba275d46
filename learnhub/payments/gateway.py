"""
Razorpay gateway wrapper
A checkout is a Payment Link: its id is the gateway session id and
its short_url is the hosted checkout page.
"""

import logging

import razorpay
from fastapi.concurrency import run_in_threadpool
from razorpay.errors import SignatureVerificationError

from learnhub.config import Config

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED_EVENT = "payment_link.paid"
PAYMENT_FAILED_EVENT = "payment.failed"


class RazorpayGateway:
    def __init__(self, config: Config, client=None):
        self.client = client or razorpay.Client(auth=(config.RAZORPAY_KEY_ID, config.RAZORPAY_KEY_SECRET))
        self.webhook_secret = config.RAZORPAY_WEBHOOK_SECRET
        logger.info("✅ Razorpay client initialized")

    async def create_checkout(self, course: dict, user: dict, callback_url: str) -> dict:
        """
        Create a hosted checkout for one course.

        Returns:
            {"id": gateway session id, "url": hosted checkout URL}
        """
        link = await run_in_threadpool(self.client.payment_link.create, {
            "amount": course["price"],
            "currency": course["currency"],
            "accept_partial": False,
            "description": course["title"][:2048],
            "customer": {
                "name": user.get("name") or "",
                "email": user.get("email") or "",
            },
            "notify": {"sms": False, "email": False},
            "callback_url": callback_url,
            "callback_method": "get",
            "notes": {
                "course_id": course["course_id"],
                "user_id": user["user_id"],
            },
        })
        return {"id": link["id"], "url": link["short_url"]}

    def verify_webhook(self, body: str, signature: str) -> bool:
        try:
            self.client.utility.verify_webhook_signature(body, signature, self.webhook_secret)
            return True
        except SignatureVerificationError:
            return False
