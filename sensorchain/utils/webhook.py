"""Fire-and-forget webhook notifications for chain events.

Resets and detected tampering are reported outside the sensor log itself:
the log cannot be trusted to attest to its own erasure or corruption.
"""
import hashlib
import hmac
import json
import threading
from datetime import datetime, timezone
from typing import Any, Dict

import requests

from sensorchain.config import settings
from sensorchain.utils.logger import logger


def _deliver(url: str, body: bytes, headers: Dict[str, str]) -> None:
    """Deliver webhook payload in a daemon background thread (fire-and-forget)."""
    try:
        resp = requests.post(url, data=body, headers=headers, timeout=5)
        logger.debug(
            "Webhook delivered",
            extra={"url": url, "status_code": resp.status_code},
        )
    except requests.RequestException as exc:
        logger.warning(
            "Webhook delivery failed",
            extra={"url": url, "error": str(exc)},
        )


def _slack_body(event_type: str, payload: Dict[str, Any]) -> bytes:
    """Format a chain event as a Slack incoming-webhook message."""
    ts = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")

    if event_type == "chain.reset":
        text = (
            f"*SensorChain - Chain Reset* :warning:\n"
            f"*{payload.get('actor', 'unknown')}* discarded "
            f"{payload.get('previous_length', 0)} records."
            + (f"\n> {payload['reason']}" if payload.get("reason") else "")
        )
        color = "#F59E0B"
    else:  # chain.tamper_detected
        text = (
            f"*SensorChain - Tampering Detected* :rotating_light:\n"
            f"Verification failed at position *{payload.get('position')}* "
            f"(`{payload.get('reason')}`)."
        )
        color = "#EF4444"

    slack_payload = {
        "attachments": [{
            "color": color,
            "text": text,
            "footer": f"SensorChain | {ts}",
        }]
    }
    return json.dumps(slack_payload).encode()


def send_webhook(event_type: str, payload: Dict[str, Any]) -> bool:
    """
    Send a webhook notification for a chain event (non-blocking).

    Supported event types:
      - ``chain.reset``           - the chain was wiped and restarted from genesis
      - ``chain.tamper_detected`` - a verification returned a tamper result

    Configuration (.env):
      - ``WEBHOOK_URL``    - destination URL; Slack incoming webhooks are auto-detected
      - ``WEBHOOK_SECRET`` - if set, adds ``X-SensorChain-Signature: sha256=<hex>``

    Returns True if a delivery was scheduled. Delivery happens in a daemon thread.
    """
    url = settings.WEBHOOK_URL
    if not url:
        return False

    if "hooks.slack.com" in url:
        body = _slack_body(event_type, payload)
        headers: Dict[str, str] = {"Content-Type": "application/json"}
    else:
        body_dict: Dict[str, Any] = {
            "event": event_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **payload,
        }
        body = json.dumps(body_dict, default=str).encode()
        headers = {"Content-Type": "application/json"}

        if settings.WEBHOOK_SECRET:
            sig = hmac.new(
                settings.WEBHOOK_SECRET.encode(), body, hashlib.sha256
            ).hexdigest()
            headers["X-SensorChain-Signature"] = f"sha256={sig}"

    threading.Thread(target=_deliver, args=(url, body, headers), daemon=True).start()
    return True
