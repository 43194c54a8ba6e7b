"""
Client for the external pizza factory.

The factory turns a validated order into a fulfillment record and answers
with a signed confirmation (``jwt``) and a report url. Network errors,
timeouts, 429 and 5xx answers are retried with exponential backoff; any other
4xx is a rejection and a 2xx body without ``jwt`` is malformed, neither is retried.
"""
import time
from typing import Dict, NamedTuple, Optional

import requests

from chalicelib.constants.constants import FACTORY_URL, FACTORY_API_KEY, FACTORY_TIMEOUT, FACTORY_MAX_ATTEMPTS, \
    FACTORY_BACKOFF_BASE
from chalicelib.utils.exceptions import UpstreamFailure, UpstreamTimeout, FactoryRejected
from chalicelib.utils.logger import logger

RETRY_STATUS_CODES = (429,)


class FactoryConfirmation(NamedTuple):
    jwt: str
    report_url: Optional[str] = None


def is_retryable_status(status_code: int) -> bool:
    return status_code >= 500 or status_code in RETRY_STATUS_CODES


class FactoryClient:

    def __init__(self, base_url: str = FACTORY_URL, api_key: str = FACTORY_API_KEY,
                 timeout: float = FACTORY_TIMEOUT, max_attempts: int = FACTORY_MAX_ATTEMPTS,
                 backoff_base: float = FACTORY_BACKOFF_BASE):
        self.url = f"{base_url.rstrip('/')}/api/order"
        self.api_key = api_key
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.backoff_base = backoff_base

    def _headers(self) -> Dict:
        return {'Content-Type': 'application/json', 'Authorization': f'Bearer {self.api_key}'}

    def backoff_delay(self, attempt: int) -> float:
        return self.backoff_base * 2 ** (attempt - 1)

    @staticmethod
    def _parse_confirmation(response) -> FactoryConfirmation:
        try:
            body = response.json()
        except ValueError:
            raise UpstreamFailure('pizza factory returned a malformed response')
        if not isinstance(body, dict) or not isinstance(body.get('jwt'), str) or not body['jwt']:
            raise UpstreamFailure('pizza factory returned a malformed response')
        return FactoryConfirmation(jwt=body['jwt'], report_url=body.get('reportUrl'))

    @staticmethod
    def _rejection_reason(response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get('message'):
            return str(body['message'])
        return (response.text or f'status {response.status_code}')[:200]

    def submit_order(self, diner: Dict, order: Dict) -> FactoryConfirmation:
        payload = {'diner': diner, 'order': order}
        last_error: UpstreamFailure = UpstreamFailure('pizza factory unavailable')

        for attempt in range(1, self.max_attempts + 1):
            try:
                response = requests.post(self.url, json=payload, headers=self._headers(), timeout=self.timeout)
            except requests.exceptions.Timeout as error:
                logger.warning(f'submit_order ::: attempt {attempt} timed out: {error}')
                last_error = UpstreamTimeout('pizza factory timed out')
            except requests.exceptions.RequestException as error:
                logger.warning(f'submit_order ::: attempt {attempt} failed: {error}')
                last_error = UpstreamFailure('pizza factory unavailable')
            else:
                if 200 <= response.status_code < 300:
                    confirmation = self._parse_confirmation(response)
                    logger.info(f"submit_order ::: order {order.get('id')} confirmed on attempt {attempt}")
                    return confirmation
                if not is_retryable_status(response.status_code):
                    reason = self._rejection_reason(response)
                    logger.warning(f'submit_order ::: rejected with {response.status_code}: {reason}')
                    raise FactoryRejected(f'pizza factory rejected the order: {reason}')
                logger.warning(f'submit_order ::: attempt {attempt} got status {response.status_code}')
                last_error = UpstreamFailure(f'pizza factory responded with status {response.status_code}')

            if attempt < self.max_attempts:
                time.sleep(self.backoff_delay(attempt))

        logger.error(f"submit_order ::: giving up on order {order.get('id')} after {self.max_attempts} attempts")
        raise last_error
