import logging

from botocore.exceptions import BotoCoreError, ClientError

from .base_client import AWSBaseClient
from .exceptions import BackendError

logger = logging.getLogger(__name__)


class S3Client(AWSBaseClient):
    def __init__(self):
        super().__init__("s3")

    def upload(self, bucket, key, fileobj, content_type=None):
        """Upload a file object and return its public URL."""
        extra = {"ContentType": content_type} if content_type else {}
        try:
            self.client.upload_fileobj(fileobj, bucket, key, ExtraArgs=extra)
        except (ClientError, BotoCoreError) as exc:
            logger.warning("S3 upload of %s to %s failed: %s", key, bucket, exc)
            raise BackendError(f"upload of {key} failed: {exc}") from exc
        return self.public_url(bucket, key)

    def public_url(self, bucket, key):
        return f"https://{bucket}.s3.{self.region_name}.amazonaws.com/{key}"
