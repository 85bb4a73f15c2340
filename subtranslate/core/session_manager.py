"""Session manager for outbound HTTP calls"""

import logging
import time
import threading
from typing import Optional, Dict
from urllib.parse import urlparse
import cloudscraper
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from requests.exceptions import RequestException, Timeout, ConnectionError

from ..utils.exceptions import CloudflareError, RateLimitError, RequestError, ServiceUnavailableError

logger = logging.getLogger(__name__)


# Connection pool limits to prevent "Too many open files" error
MAX_POOL_CONNECTIONS = 5
MAX_POOL_SIZE = 5
MAX_CONCURRENT_REQUESTS = 4


class SessionManager:
    """Manages a shared cloudscraper session for one remote service"""

    def __init__(self, timeout: float = 10, headers: Optional[Dict[str, str]] = None,
                 min_request_interval: float = 0.0, max_retries: int = 0,
                 max_concurrent_requests: int = MAX_CONCURRENT_REQUESTS):
        self.timeout = timeout
        self.headers = dict(headers or {})
        self.session: Optional[cloudscraper.CloudScraper] = None
        self.last_request_time = 0.0
        self.min_request_interval = min_request_interval
        self.max_retries = max_retries
        self._lock = threading.Lock()
        self._rate_lock = threading.Lock()
        self._request_semaphore = threading.BoundedSemaphore(max(max_concurrent_requests, 1))

    def _create_session(self) -> cloudscraper.CloudScraper:
        """Create a new cloudscraper session with connection pool limits"""
        try:
            session = cloudscraper.create_scraper(
                browser={
                    'browser': 'chrome',
                    'platform': 'windows',
                    'mobile': False
                },
                debug=False
            )

            # Only idempotent GETs are retried, and only when configured
            retry_strategy = Retry(
                total=self.max_retries,
                read=0,
                backoff_factor=1,
                status_forcelist=[429, 502, 503, 504],
                allowed_methods=["HEAD", "GET", "OPTIONS"],
                raise_on_status=False
            )

            adapter = HTTPAdapter(
                pool_connections=MAX_POOL_CONNECTIONS,
                pool_maxsize=MAX_POOL_SIZE,
                max_retries=retry_strategy,
                pool_block=True
            )

            session.mount("http://", adapter)
            session.mount("https://", adapter)

            session.verify = True
            if self.headers:
                session.headers.update(self.headers)

            logger.info(f"Created HTTP session with pool_maxsize={MAX_POOL_SIZE}, max_retries={self.max_retries}")
            return session

        except Exception as e:
            logger.error(f"Failed to create HTTP session: {e}")
            raise CloudflareError(f"Could not create session: {e}")

    def get_session(self) -> cloudscraper.CloudScraper:
        """Get or create the session (thread-safe)"""
        with self._lock:
            if self.session is None:
                self.session = self._create_session()
            return self.session

    def _replace_session(self, stale: cloudscraper.CloudScraper) -> cloudscraper.CloudScraper:
        """Swap in a new shared session unless another thread already did.

        The stale session is not closed here; other threads may still have
        requests in flight on it.
        """
        with self._lock:
            if self.session is stale or self.session is None:
                self.session = self._create_session()
            return self.session

    def _wait_for_rate_limit(self):
        """Wait if necessary to respect rate limiting"""
        if self.min_request_interval <= 0:
            return

        with self._rate_lock:
            time_since_last = time.monotonic() - self.last_request_time
            if time_since_last < self.min_request_interval:
                sleep_time = self.min_request_interval - time_since_last
                logger.debug(f"Rate limiting: sleeping for {sleep_time:.2f} seconds")
                time.sleep(sleep_time)
            self.last_request_time = time.monotonic()

    def make_request(self, method: str, url: str, **kwargs):
        """Make a request with error handling.

        Raises:
            RequestError: on timeouts and HTTP errors
            ServiceUnavailableError: when the service cannot be reached
            RateLimitError: on HTTP 429
            CloudflareError: on HTTP 403, from bad credentials or a blocked request
        """
        acquired = self._request_semaphore.acquire(timeout=60)
        if not acquired:
            raise RequestError("Request timeout: too many concurrent requests")

        response = None
        try:
            self._wait_for_rate_limit()

            session = self.get_session()

            if 'timeout' not in kwargs:
                kwargs['timeout'] = self.timeout

            logger.debug(f"Making {method.upper()} request to: {url}")
            response = session.request(method, url, **kwargs)

            # A fresh session usually clears a Cloudflare challenge
            if 'cf-ray' in response.headers and response.status_code in [403, 503]:
                logger.warning("Cloudflare challenge detected, retrying with a new session")
                response.close()
                session = self._replace_session(session)
                response = session.request(method, url, **kwargs)

            response.raise_for_status()
            logger.debug(f"Request successful: {response.status_code}")
            return response

        except Timeout as e:
            logger.error(f"Request timeout: {e}")
            raise RequestError(f"Request timeout: {e}")

        except ConnectionError as e:
            logger.error(f"Connection error: {e}")
            raise ServiceUnavailableError(f"Connection error: {e}")

        except RequestException as e:
            if response is not None:
                response.close()

            if getattr(e, 'response', None) is not None:
                status_code = e.response.status_code
                if status_code == 403:
                    host = urlparse(url).netloc
                    logger.error(f"Access forbidden by {host} - check the API key, or the request was blocked")
                    raise CloudflareError(f"Access forbidden by {host} (HTTP 403): invalid API key or blocked request")
                elif status_code == 429:
                    logger.error("Rate limit exceeded")
                    raise RateLimitError(f"Rate limit exceeded: {e}")
                elif status_code == 503:
                    logger.error("Service unavailable")
                    raise ServiceUnavailableError("Service is temporarily unavailable")
                else:
                    logger.error(f"HTTP error {status_code}: {e}")
                    raise RequestError(f"HTTP error {status_code}: {e}")
            else:
                logger.error(f"Request error: {e}")
                raise RequestError(f"Request error: {e}")
        finally:
            self._request_semaphore.release()

    def get(self, url: str, **kwargs):
        """Make a GET request"""
        return self.make_request('GET', url, **kwargs)

    def post(self, url: str, **kwargs):
        """Make a POST request"""
        return self.make_request('POST', url, **kwargs)

    def close(self):
        """Close the session and release all resources"""
        with self._lock:
            if self.session:
                try:
                    self.session.close()
                except Exception as e:
                    logger.warning(f"Error closing session: {e}")
                finally:
                    self.session = None
                    logger.info("Closed HTTP session and released resources")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
