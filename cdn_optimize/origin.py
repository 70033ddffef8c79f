"""Origin store access for the CDN image optimizer.

Fetches original image bytes by storage key, either directly from a
Cloudflare R2 bucket through boto3 or from the bucket's public URL
through httpx. Every fetch is bounded by a timeout and never retried.
"""

import logging
from time import monotonic
from typing import Any, Iterable, Optional, Protocol

import boto3
import httpx
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    ReadTimeoutError,
)

from .errors import NotFound, UpstreamError, UpstreamTimeout
from .models import OriginConfig, OriginObject, R2Config
from .storage import guess_content_type

logger = logging.getLogger(__name__)

MISSING_KEY_CODES = {'NoSuchKey', '404', 'NotFound'}
CHUNK_SIZE = 64 * 1024


class OriginStore(Protocol):
    def fetch(self, key: str) -> OriginObject: ...

    def verify(self) -> bool: ...


def init_r2_client(config: R2Config, timeout: float = 10.0) -> Any:
    """Create and return a boto3 S3 client configured for R2.

    Args:
        config: R2 configuration with credentials
        timeout: Connect and read timeout in seconds

    Returns:
        Configured boto3 S3 client
    """
    session = boto3.session.Session()
    client = session.client(
        service_name='s3',
        endpoint_url=f'https://{config.account_id}.r2.cloudflarestorage.com',
        aws_access_key_id=config.access_key_id,
        aws_secret_access_key=config.secret_access_key,
        region_name='auto',
        config=Config(
            connect_timeout=timeout,
            read_timeout=timeout,
            retries={'total_max_attempts': 1},
        ),
    )
    return client


def read_before_deadline(chunks: Iterable[bytes], deadline: float, source: str) -> bytes:
    """Join body chunks, giving up once the overall fetch deadline has passed.

    Per-read socket timeouts do not bound an origin that keeps trickling
    bytes; the whole body is held to one wall-clock deadline.

    Raises:
        UpstreamTimeout: If the deadline passes before the body is complete
    """
    data = bytearray()
    for chunk in chunks:
        data.extend(chunk)
        if monotonic() > deadline:
            raise UpstreamTimeout(f"Timed out reading {source}")
    return bytes(data)


def _with_content_type(key: str, data: bytes, content_type: Optional[str]) -> OriginObject:
    if not data:
        raise NotFound(f"Empty object at {key}")
    return OriginObject(data=data, content_type=content_type or guess_content_type(key))


class R2OriginStore:
    """Fetch originals straight from an R2 bucket."""

    def __init__(self, client: Any, bucket: str, timeout: float = 10.0):
        self.client = client
        self.bucket = bucket
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: R2Config, timeout: float = 10.0) -> "R2OriginStore":
        return cls(init_r2_client(config, timeout), config.bucket_name, timeout)

    def fetch(self, key: str) -> OriginObject:
        """Fetch an object from the bucket.

        Args:
            key: Object key

        Returns:
            OriginObject with bytes and content type

        Raises:
            NotFound: If the key does not exist or the object is empty
            UpstreamTimeout: If R2 did not answer or deliver the body in time
            UpstreamError: For any other R2 failure
        """
        deadline = monotonic() + self.timeout
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            body = response['Body']
            data = read_before_deadline(iter(lambda: body.read(CHUNK_SIZE), b''), deadline, key)
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            if error_code in MISSING_KEY_CODES:
                raise NotFound(f"No object at {key}") from e
            raise UpstreamError(f"R2 error for {key}: {error_code}") from e
        except (ConnectTimeoutError, ReadTimeoutError) as e:
            raise UpstreamTimeout(f"R2 timed out fetching {key}") from e
        except BotoCoreError as e:
            raise UpstreamError(f"R2 request failed for {key}: {e}") from e

        logger.debug("Fetched %s from R2 (%d bytes)", key, len(data))
        return _with_content_type(key, data, response.get('ContentType'))

    def verify(self) -> bool:
        """Verify R2 connection by checking bucket access.

        Raises:
            RuntimeError: If connection fails
        """
        try:
            self.client.head_bucket(Bucket=self.bucket)
            return True
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            if error_code == '404':
                raise RuntimeError(f"Bucket '{self.bucket}' not found")
            elif error_code == '403':
                raise RuntimeError(f"Access denied to bucket '{self.bucket}'. Check your credentials.")
            else:
                raise RuntimeError(f"Failed to connect to R2: {e}")
        except BotoCoreError as e:
            raise RuntimeError(f"Failed to connect to R2: {e}")


class HttpOriginStore:
    """Fetch originals from the bucket's public URL."""

    def __init__(self, base_url: str, timeout: float = 10.0, client: Optional[httpx.Client] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    def url_for(self, key: str) -> str:
        return f"{self.base_url}/{key}"

    def fetch(self, key: str) -> OriginObject:
        """Fetch an object over HTTP.

        Args:
            key: Object key appended to the base URL

        Returns:
            OriginObject with bytes and content type

        Raises:
            NotFound: If the origin answers with a non-success status or an empty body
            UpstreamTimeout: If the origin did not answer or deliver the body in time
            UpstreamError: If the origin could not be reached
        """
        url = self.url_for(key)
        deadline = monotonic() + self.timeout
        try:
            with self.client.stream('GET', url) as response:
                if not response.is_success:
                    raise NotFound(f"Origin returned {response.status_code} for {url}")
                data = read_before_deadline(response.iter_bytes(CHUNK_SIZE), deadline, url)
                content_type = response.headers.get('content-type')
        except httpx.TimeoutException as e:
            raise UpstreamTimeout(f"Timed out fetching {url}") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Failed to fetch {url}: {e}") from e

        logger.debug("Fetched %s (%d bytes)", url, len(data))
        return _with_content_type(key, data, content_type)

    def verify(self) -> bool:
        """Verify the public URL answers.

        Raises:
            RuntimeError: If the origin cannot be reached
        """
        try:
            self.client.head(self.base_url)
            return True
        except httpx.HTTPError as e:
            raise RuntimeError(f"Failed to reach {self.base_url}: {e}")

    def close(self) -> None:
        self.client.close()


def create_origin_store(
    origin_config: OriginConfig,
    r2_config: Optional[R2Config] = None,
) -> OriginStore:
    """Pick the origin store for the configuration.

    R2 credentials take precedence; otherwise the public URL is used.

    Raises:
        ValueError: If neither R2 credentials nor a public URL are configured
    """
    if r2_config is not None:
        return R2OriginStore.from_config(r2_config, origin_config.timeout)
    if origin_config.public_url:
        return HttpOriginStore(origin_config.public_url, origin_config.timeout)
    raise ValueError("No origin configured: set r2 credentials or origin.public_url")
