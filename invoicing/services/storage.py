# invoicing/services/storage.py
import boto3
from botocore.config import Config
from invoicing.config import settings
import structlog

logger = structlog.get_logger()


class StorageClient:
    """S3-compatible object storage (Cloudflare R2) holding public business logos."""

    def __init__(self):
        self.s3 = boto3.client(
            "s3",
            endpoint_url=settings.R2_ENDPOINT_URL or None,
            aws_access_key_id=settings.R2_ACCESS_KEY_ID or None,
            aws_secret_access_key=settings.R2_SECRET_ACCESS_KEY or None,
            config=Config(signature_version="s3v4"),
            region_name="auto",
        )
        self.bucket = settings.R2_BUCKET_NAME

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        # put_object overwrites, so re-uploading a logo replaces the old one.
        self.s3.put_object(
            Bucket=self.bucket, Key=path, Body=data, ContentType=content_type
        )
        logger.info("storage_uploaded", key=path, size=len(data))
        return path

    def get_public_url(self, path: str) -> str:
        base = settings.STORAGE_PUBLIC_BASE_URL.rstrip("/")
        if not base:
            base = f"{(settings.R2_ENDPOINT_URL or '').rstrip('/')}/{self.bucket}"
        return f"{base}/{path}"

    def delete(self, path: str):
        self.s3.delete_object(Bucket=self.bucket, Key=path)
        logger.info("storage_deleted", key=path)


storage_client = StorageClient()
