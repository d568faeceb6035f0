"""
Web Push delivery through pywebpush.
"""
import json
from typing import Any, Dict, Optional

from pywebpush import WebPushException, webpush

from repositories.push_subscriptions_repo import PushSubscriptionsRepository
from utils.logger import get_logger

logger = get_logger(__name__)

# Push service answers for subscriptions that no longer exist
GONE_STATUSES = (404, 410)


class PushDeliveryError(Exception):
    pass


class PushService:
    def __init__(
        self,
        subscriptions_repo: PushSubscriptionsRepository,
        vapid_private_key: Optional[str],
        vapid_subject: str,
    ):
        self.subscriptions_repo = subscriptions_repo
        self.vapid_private_key = vapid_private_key
        self.vapid_subject = vapid_subject
        if not self.enabled:
            logger.info("VAPID keys not configured; push notifications are disabled")

    @property
    def enabled(self) -> bool:
        return bool(self.vapid_private_key)

    def send_to_user(self, user_id: str, payload: Dict[str, Any]) -> int:
        """
        Send payload to every subscription of user_id (blocking).

        Returns the number of subscriptions that accepted the message.
        Raises PushDeliveryError when every delivery failed for a reason other
        than the subscription being gone.
        """
        if not self.enabled:
            return 0

        subscriptions = self.subscriptions_repo.list_for_user(user_id)
        data = json.dumps(payload)
        sent = 0
        errors = []
        for sub in subscriptions:
            try:
                webpush(
                    subscription_info={
                        "endpoint": sub["endpoint"],
                        "keys": {"p256dh": sub["p256dh"], "auth": sub["auth"]},
                    },
                    data=data,
                    vapid_private_key=self.vapid_private_key,
                    vapid_claims={"sub": self.vapid_subject},
                )
                sent += 1
            except WebPushException as e:
                status = getattr(e.response, "status_code", None)
                if status in GONE_STATUSES:
                    logger.info(f"Removing expired push subscription for user {user_id}")
                    self.subscriptions_repo.delete_endpoint(sub["endpoint"])
                    continue
                logger.warning(f"Push to user {user_id} failed ({status}): {e}")
                errors.append(e)

        if errors and sent == 0:
            raise PushDeliveryError(f"Push delivery to user {user_id} failed: {errors[0]}")
        return sent
