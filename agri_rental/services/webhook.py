import asyncio
import logging
import time
from typing import Optional

import httpx

from agri_rental.core.config import settings
from agri_rental.core.metrics import webhook_deliveries, webhook_duration

logger = logging.getLogger(__name__)

# 4xx answers worth another attempt; any other 4xx means the payload was refused
RETRYABLE_CLIENT_ERRORS = {408, 425, 429}


def _should_retry(status_code: int) -> bool:
    return status_code >= 500 or status_code in RETRYABLE_CLIENT_ERRORS


async def send_webhook(
    payload: dict,
    retries: Optional[int] = None,
    client: Optional[httpx.AsyncClient] = None,
    backoff: float = 1.0,
) -> bool:
    """POST a notification to the webhook, retrying with exponential backoff.

    The notification id travels as ``Idempotency-Key`` so the receiver can
    drop duplicates caused by retries after a lost response.
    """
    if retries is None:
        retries = settings.WEBHOOK_RETRIES

    ref = payload.get("notification_id")
    headers = {"Idempotency-Key": str(ref)} if ref else {}
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=settings.WEBHOOK_TIMEOUT)

    try:
        for attempt in range(1, retries + 1):
            start = time.perf_counter()
            try:
                response = await client.post(settings.NOTIFICATION_WEBHOOK_URL, json=payload, headers=headers)
            except httpx.TimeoutException:
                logger.warning(f"Webhook timeout (attempt {attempt}/{retries}) for notification {ref}")
            except httpx.HTTPError as e:
                logger.warning(f"Webhook delivery error (attempt {attempt}/{retries}): {e} for notification {ref}")
            else:
                if response.is_success:
                    webhook_deliveries.labels(status="success", retry_count=str(attempt - 1)).inc()
                    webhook_duration.labels(status="success").observe(time.perf_counter() - start)
                    logger.info(f"Webhook delivery succeeded for notification {ref}")
                    return True
                logger.warning(
                    f"Webhook delivery failed (attempt {attempt}/{retries}): "
                    f"Status {response.status_code} for notification {ref}"
                )
                if not _should_retry(response.status_code):
                    webhook_duration.labels(status="failure").observe(time.perf_counter() - start)
                    webhook_deliveries.labels(status="rejected", retry_count=str(attempt - 1)).inc()
                    return False
            webhook_duration.labels(status="failure").observe(time.perf_counter() - start)

            if attempt < retries:
                await asyncio.sleep(backoff)
                backoff *= 2.0
    finally:
        if owns_client:
            await client.aclose()

    webhook_deliveries.labels(status="failure", retry_count=str(retries)).inc()
    logger.error(f"Webhook delivery failed after {retries} attempts for notification {ref}")
    return False
