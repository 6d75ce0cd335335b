"""
Shared HTTP client for external providers

Handles:
- Rate limiting (shared per provider)
- Retry logic for 429 / 5xx / timeouts
- Translating requests errors into ProviderTimeout / ProviderError
"""

import time
from typing import Any, Dict, Optional

import requests
from loguru import logger

from ..config import PipelineConfig, get_config
from ..errors import ProviderError, ProviderTimeout
from .rate_limit import get_rate_limiter

RETRYABLE_STATUS = (429, 502, 503, 504)


class ProviderHTTPClient:
    """Base client for one external provider"""

    provider = "http"

    def __init__(self, config: Optional[PipelineConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or get_config()
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": self.config.api.user_agent})
        self.timeout = self.config.api.request_timeout
        self.max_retries = self.config.api.max_retries
        self.retry_delay = self.config.api.retry_delay
        self.rate_limiter = get_rate_limiter(
            self.provider, self.config.rate_limits.interval_for(self.provider)
        )

    def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any
    ) -> Any:
        """
        Execute a request with retry logic and return the decoded JSON body

        Raises:
            ProviderTimeout: If every attempt timed out
            ProviderError: On non-2xx, connection failure or undecodable body
        """
        for attempt in range(self.max_retries):
            self.rate_limiter.wait()
            last_attempt = attempt == self.max_retries - 1
            wait_time = self.retry_delay * (attempt + 1)
            try:
                response = self.session.request(
                    method,
                    url,
                    headers=headers,
                    timeout=self.timeout,
                    **kwargs
                )
                response.raise_for_status()
                return response.json()
            except requests.exceptions.Timeout:
                logger.warning(f"{self.provider} timeout (attempt {attempt + 1}/{self.max_retries})")
                if last_attempt:
                    logger.error(f"{self.provider} failed: timeout after {self.max_retries} attempts")
                    raise ProviderTimeout(self.provider, f"timeout after {self.max_retries} attempts")
                time.sleep(wait_time)
            except requests.exceptions.HTTPError as e:
                status = e.response.status_code if e.response is not None else 0
                if status in RETRYABLE_STATUS and not last_attempt:
                    logger.warning(f"{self.provider} HTTP {status} (attempt {attempt + 1}/{self.max_retries}). Retrying in {wait_time}s...")
                    time.sleep(wait_time)
                    continue
                logger.error(f"{self.provider} failed: HTTP {status}")
                raise ProviderError(self.provider, f"HTTP {status}") from e
            except requests.exceptions.RequestException as e:
                logger.warning(f"{self.provider} request failed (attempt {attempt + 1}): {e}")
                if last_attempt:
                    logger.error(f"{self.provider} failed after {self.max_retries} attempts: {e}")
                    raise ProviderError(self.provider, f"request failed: {e}") from e
                time.sleep(wait_time)
            except ValueError as e:
                raise ProviderError(self.provider, f"invalid JSON response: {e}") from e

        raise ProviderError(self.provider, "no attempts made")
