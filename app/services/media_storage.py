"""
Media host client

Thin adapter over the S3-compatible object store (Cloudflare R2). The
instance is built once at start-up and handed to whoever needs it; nothing
here reads configuration at import time.
"""

import logging
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

# Presigned URL expiration time (1 hour)
PRESIGNED_URL_EXPIRATION = 3600

INLINE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif", ".pdf")


class MediaUploadError(Exception):
    """The media host rejected or failed an operation"""


class MediaStorage:
    def __init__(self, client, bucket: str, public_base_url: Optional[str] = None):
        self.client = client
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None

    @classmethod
    def from_settings(
        cls,
        account_id: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        bucket: Optional[str] = None,
        public_base_url: Optional[str] = None,
    ) -> "MediaStorage":
        """Build an R2-backed storage from explicit values, falling back to app.config"""
        from .. import config

        account_id = account_id or config.R2_ACCOUNT_ID
        client = boto3.client(
            "s3",
            endpoint_url=f"https://{account_id}.r2.cloudflarestorage.com",
            aws_access_key_id=access_key_id or config.R2_ACCESS_KEY_ID,
            aws_secret_access_key=secret_access_key or config.R2_SECRET_ACCESS_KEY,
            config=Config(signature_version="s3v4"),
            region_name="auto",
        )
        logger.info(f"✅ Media storage configured for bucket: {bucket or config.R2_BUCKET_NAME}")
        return cls(
            client,
            bucket or config.R2_BUCKET_NAME,
            public_base_url or config.R2_PUBLIC_URL,
        )

    def put(self, key: str, body: bytes, content_type: str) -> str:
        """Store an object and return a URL for it"""
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"❌ Failed to upload {key} to media host: {e}")
            raise MediaUploadError(f"Failed to upload {key}") from e

        logger.info(f"✅ Uploaded to media host: {key} ({len(body)} bytes)")
        return self.url_for(key)

    def delete(self, key: str) -> bool:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
            logger.info(f"🗑️ Deleted from media host: {key}")
            return True
        except (ClientError, BotoCoreError) as e:
            logger.error(f"❌ Failed to delete {key} from media host: {e}")
            return False

    def url_for(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        return self.presigned_url(key)

    def presigned_url(self, key: str, expiration: int = PRESIGNED_URL_EXPIRATION) -> str:
        """Generate a presigned URL for accessing a private object"""
        params = {"Bucket": self.bucket, "Key": key}
        if key.lower().endswith(INLINE_EXTENSIONS):
            params["ResponseContentDisposition"] = "inline"

        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params=params,
                ExpiresIn=expiration,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"❌ Failed to generate presigned URL for key {key}: {e}")
            raise MediaUploadError(f"Failed to sign URL for {key}") from e
