"""
Storage service for X-ray image files.
"""
import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from kneecare.core.config import Settings
from kneecare.core.exceptions import InternalError

logger = logging.getLogger(__name__)

LOCAL_URL_PREFIX = "/uploads/"
S3_KEY_PREFIX = "xray-images/"


class StorageService:
    """Stores files on local disk or in S3 and hands back a reference URL."""

    def __init__(self, settings: Settings, s3_client=None):
        self.settings = settings
        self.use_s3 = settings.USE_S3
        self.s3_client = s3_client
        if self.use_s3 and self.s3_client is None:
            self.s3_client = boto3.client(
                's3',
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
                region_name=settings.AWS_REGION,
            )

    @staticmethod
    def _unique_name(filename: str) -> str:
        return f"{uuid.uuid4()}{os.path.splitext(filename)[1].lower()}"

    def save_file(self, content: bytes, filename: str, content_type: str) -> str:
        """Save file to storage and return its URL."""
        if self.use_s3:
            return self._save_to_s3(content, filename, content_type)
        return self._save_to_local(content, filename)

    def _save_to_local(self, content: bytes, filename: str) -> str:
        os.makedirs(self.settings.UPLOAD_DIR, exist_ok=True)
        unique_filename = self._unique_name(filename)
        file_path = os.path.join(self.settings.UPLOAD_DIR, unique_filename)
        with open(file_path, 'wb') as f:
            f.write(content)
        logger.info(f"File saved locally: {file_path}")
        return f"{LOCAL_URL_PREFIX}{unique_filename}"

    def _save_to_s3(self, content: bytes, filename: str, content_type: str) -> str:
        bucket = self.settings.AWS_S3_BUCKET
        s3_key = f"{S3_KEY_PREFIX}{self._unique_name(filename)}"
        try:
            self.s3_client.put_object(
                Bucket=bucket,
                Key=s3_key,
                Body=content,
                ContentType=content_type,
                Metadata={
                    'original_filename': filename,
                    'uploaded_at': datetime.now(timezone.utc).isoformat(),
                },
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to save file to S3: {e}")
            raise InternalError("Failed to store uploaded file")
        logger.info(f"File saved to S3: {s3_key}")
        return f"https://{bucket}.s3.{self.settings.AWS_REGION}.amazonaws.com/{s3_key}"

    def delete_file(self, url: str) -> bool:
        """Delete a stored file. Missing files are reported, not raised."""
        if self.use_s3 and url.startswith("https://"):
            key = url.split(".amazonaws.com/", 1)[-1]
            try:
                self.s3_client.delete_object(Bucket=self.settings.AWS_S3_BUCKET, Key=key)
                return True
            except (BotoCoreError, ClientError) as e:
                logger.error(f"Failed to delete S3 object {key}: {e}")
                return False

        path = self.local_path(url)
        if path and os.path.exists(path):
            os.remove(path)
            logger.info(f"File deleted locally: {path}")
            return True
        return False

    def local_path(self, url: str) -> Optional[str]:
        if not url.startswith(LOCAL_URL_PREFIX):
            return None
        return os.path.join(self.settings.UPLOAD_DIR, os.path.basename(url))
