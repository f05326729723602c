"""
Webhook notification for composer module.

Posts the terminal CompositionResult to the caller's webhook URL.
"""
import httpx

from shared.config import settings
from shared.logging import get_logger
from shared.models.composition import CompositionResult

logger = get_logger("composer.notifier")


async def send_webhook(url: str, result: CompositionResult) -> bool:
    """
    POST the composition result to the webhook URL.

    Delivery is fire-and-forget: failures are logged and never raised,
    and there is no retry.

    Args:
        url: Webhook URL from the composition request
        result: Terminal job outcome

    Returns:
        True if the webhook answered with a 2xx status
    """
    payload = result.to_payload()
    logger.info(
        f"Sending {result.status} webhook",
        extra={"job_id": result.job_id, "url": url, "payload": payload}
    )

    try:
        async with httpx.AsyncClient(timeout=settings.webhook_timeout_seconds) as client:
            response = await client.post(url, json=payload)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.error(
            f"Webhook error: {e}",
            extra={"job_id": result.job_id, "url": url, "error_type": type(e).__name__}
        )
        return False
    except Exception as e:
        logger.error(
            f"Unexpected webhook error: {e}",
            exc_info=True,
            extra={"job_id": result.job_id, "url": url, "error_type": type(e).__name__}
        )
        return False

    if response.is_success:
        logger.info("Webhook sent successfully", extra={"job_id": result.job_id, "status_code": response.status_code})
        return True

    logger.error(
        f"Webhook failed: {response.status_code} {response.reason_phrase}",
        extra={"job_id": result.job_id, "url": url, "status_code": response.status_code}
    )
    return False
