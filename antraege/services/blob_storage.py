import asyncio
import uuid
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional, Sequence
from urllib.parse import quote, unquote
import boto3
import structlog
from antraege.config import settings

logger = structlog.get_logger()

# delete_objects accepts at most 1000 keys per request
DELETE_BATCH_SIZE = 1000


class BlobStorageError(Exception):
    """Raised when the blob store rejects an operation."""

    def __init__(self, message: str, failed_keys: Optional[List[str]] = None):
        super().__init__(message)
        self.failed_keys = failed_keys or []


@dataclass
class PutBlobResult:
    url: str
    pathname: str
    content_type: str


class BlobStorage:
    def __init__(self, s3_client=None, bucket_name: Optional[str] = None, public_base_url: Optional[str] = None):
        self.s3_client = s3_client or boto3.client(
            's3',
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            region_name=settings.aws_region,
            endpoint_url=settings.s3_endpoint_url
        )
        self.bucket_name = bucket_name or settings.s3_bucket_name
        base_url = public_base_url or settings.blob_public_base_url
        if not base_url:
            base_url = f"https://{self.bucket_name}.s3.{settings.aws_region}.amazonaws.com"
        self.public_base_url = base_url.rstrip('/')

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{quote(key)}"

    def key_from_url(self, url: str) -> str:
        """
        Resolve the object key of a stored blob.

        Args:
            url: Public URL, s3:// URL or a bare key

        Returns:
            Object key inside the bucket
        """
        if url.startswith('s3://'):
            # Remove 's3://bucket-name/'
            return url.split('/', 3)[3]

        clean_url = url.split('?')[0]
        if clean_url.startswith(self.public_base_url + '/'):
            return unquote(clean_url[len(self.public_base_url) + 1:])
        if f"{self.bucket_name}.s3.amazonaws.com/" in clean_url:
            return unquote(clean_url.split(f"{self.bucket_name}.s3.amazonaws.com/", 1)[1])
        if f"{self.bucket_name}.s3." in clean_url and '.amazonaws.com/' in clean_url:
            return unquote(clean_url.split('.amazonaws.com/', 1)[1])
        if clean_url.startswith(('http://', 'https://')):
            raise BlobStorageError(f"URL does not belong to bucket {self.bucket_name}: {url}")
        return url

    def _put_object(self, key: str, content: bytes, content_type: str, access: str, cache_control_max_age: int) -> None:
        params = {
            'Bucket': self.bucket_name,
            'Key': key,
            'Body': content,
            'ContentType': content_type,
            'CacheControl': f"public, max-age={cache_control_max_age}",
        }
        if access == 'public':
            params['ACL'] = 'public-read'
        self.s3_client.put_object(**params)

    def _delete_objects(self, keys: List[str]) -> None:
        failed: List[str] = []
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            chunk = keys[start:start + DELETE_BATCH_SIZE]
            response = self.s3_client.delete_objects(
                Bucket=self.bucket_name,
                Delete={'Objects': [{'Key': key} for key in chunk], 'Quiet': True}
            )
            for error in response.get('Errors') or []:
                failed.append(error.get('Key'))

        if failed:
            raise BlobStorageError(
                f"Failed to delete {len(failed)} of {len(keys)} objects",
                failed_keys=failed
            )

    async def put(
        self,
        pathname: str,
        content: bytes,
        *,
        content_type: str,
        access: str = 'public',
        add_random_suffix: bool = False,
        cache_control_max_age: Optional[int] = None
    ) -> PutBlobResult:
        """
        Store a blob under the given path.

        Args:
            pathname: Object path inside the bucket
            content: File content
            content_type: MIME type stored with the object
            access: 'public' makes the object world-readable
            add_random_suffix: Append a random suffix before the extension
            cache_control_max_age: Cache-Control max-age in seconds

        Returns:
            PutBlobResult with the public URL of the object
        """
        key = pathname
        if add_random_suffix:
            stem, dot, extension = pathname.rpartition('.')
            suffix = uuid.uuid4().hex[:8]
            key = f"{stem}-{suffix}.{extension}" if dot and '/' not in extension else f"{pathname}-{suffix}"

        max_age = settings.blob_cache_control_max_age if cache_control_max_age is None else cache_control_max_age
        await asyncio.to_thread(self._put_object, key, content, content_type, access, max_age)

        url = self.public_url(key)
        logger.info("Stored blob", key=key, content_type=content_type, size=len(content))
        return PutBlobResult(url=url, pathname=key, content_type=content_type)

    async def delete(self, urls: Sequence[str]) -> None:
        """
        Delete blobs in a single batch request.

        Raises:
            BlobStorageError: If any object could not be deleted
        """
        keys = [self.key_from_url(url) for url in urls]
        if not keys:
            return
        await asyncio.to_thread(self._delete_objects, keys)
        logger.info("Deleted blobs", key_count=len(keys))


@lru_cache
def get_blob_storage() -> BlobStorage:
    return BlobStorage()
