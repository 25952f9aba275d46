"""
S3-compatible object storage client
Signed URLs are computed locally; uploads and deletes hit the store
"""

import logging
from typing import Optional

import boto3
from botocore.config import Config as BotoConfig
from fastapi.concurrency import run_in_threadpool

from learnhub.config import Config

logger = logging.getLogger(__name__)


class ObjectStorage:
    def __init__(self, config: Config, client=None):
        self.bucket = config.S3_BUCKET
        self.default_ttl = config.SIGNED_URL_TTL_SECONDS
        self.client = client or boto3.client(
            "s3",
            endpoint_url=config.S3_ENDPOINT_URL,
            aws_access_key_id=config.S3_ACCESS_KEY_ID,
            aws_secret_access_key=config.S3_SECRET_ACCESS_KEY,
            region_name=config.S3_REGION,
            config=BotoConfig(signature_version="s3v4"),
        )
        logger.info(f"✅ Object storage ready (bucket={self.bucket})")

    def signed_download_url(self, key: str, expires_in: Optional[int] = None) -> str:
        return self.client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=expires_in or self.default_ttl,
        )

    def signed_upload_url(self, key: str, content_type: str, expires_in: Optional[int] = None) -> str:
        """Direct browser upload; the PUT must send the same Content-Type"""
        return self.client.generate_presigned_url(
            "put_object",
            Params={"Bucket": self.bucket, "Key": key, "ContentType": content_type},
            ExpiresIn=expires_in or self.default_ttl,
        )

    async def upload(self, key: str, body: bytes, content_type: Optional[str] = None) -> str:
        await run_in_threadpool(
            self.client.put_object,
            Bucket=self.bucket,
            Key=key,
            Body=body,
            ContentType=content_type or "application/octet-stream",
        )
        return key

    async def delete(self, key: str):
        await run_in_threadpool(self.client.delete_object, Bucket=self.bucket, Key=key)
