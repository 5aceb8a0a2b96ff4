import logging
import time
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


def normalize_mobile(mobile: str, country_code: str = "+91") -> str:
    """Prefix the country code onto numbers that do not carry one."""
    mobile = mobile.strip()
    if mobile.startswith("+"):
        return mobile
    return f"{country_code}{mobile}"


class LogNotifier:
    """Writes messages to the log instead of sending them. Used when SMS is not configured."""

    def __init__(self, country_code: str = "+91") -> None:
        self.country_code = country_code

    def send(self, mobile: str, message: str) -> bool:
        logger.info("SMS to %s: %s", normalize_mobile(mobile, self.country_code), message)
        return True


class SmsNotifier:
    """Sends text messages through the Twilio REST API."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        country_code: str = "+91",
        timeout: float = 10.0,
        retries: int = 3,
        backoff: float = 0.5,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.account_sid = account_sid
        self.from_number = from_number
        self.country_code = country_code
        self.retries = retries
        self.backoff = backoff
        self._client = client or httpx.Client(
            auth=(account_sid, auth_token),
            timeout=httpx.Timeout(timeout, connect=5.0),
        )

    def send(self, mobile: str, message: str) -> bool:
        """Send ``message`` to ``mobile``. Returns True when the provider accepted it."""
        to = normalize_mobile(mobile, self.country_code)
        resp = self._post_with_retry(
            TWILIO_MESSAGES_URL.format(sid=self.account_sid),
            data={"To": to, "From": self.from_number, "Body": message},
        )
        if resp is None:
            logger.error("SMS provider unreachable, message to %s not sent", to)
            return False
        if resp.status_code >= 300:
            logger.error("SMS provider rejected message to %s: HTTP %s", to, resp.status_code)
            return False
        logger.info("Sent message to: %s", to)
        return True

    def _post_with_retry(self, url: str, data: dict) -> Optional[httpx.Response]:
        """Retry transport errors with exponential backoff. HTTP error statuses are not retried."""
        for attempt in range(self.retries):
            try:
                return self._client.post(url, data=data)
            except httpx.RequestError as exc:
                if attempt < self.retries - 1:
                    wait_time = self.backoff * (2 ** attempt)
                    logger.warning("SMS request failed (%s), retrying in %.1fs", exc, wait_time)
                    time.sleep(wait_time)
                else:
                    return None
        return None

    def close(self) -> None:
        self._client.close()


def build_notifier(settings):
    """Twilio when credentials are configured, otherwise log-only."""
    if settings.sms_configured:
        return SmsNotifier(
            settings.twilio_account_sid,
            settings.twilio_auth_token,
            settings.twilio_from_number,
            country_code=settings.sms_country_code,
            timeout=settings.sms_timeout,
        )
    logger.info("SMS credentials not set, notifications will only be logged")
    return LogNotifier(settings.sms_country_code)
