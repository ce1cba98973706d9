from __future__ import annotations
import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

@dataclass(frozen=True)
class Settings:
    aws_region: str = os.getenv("AWS_REGION", "us-west-2")
    stage: str = os.getenv("STAGE", "dev")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Media store
    media_backend: str = os.getenv("MEDIA_BACKEND", "s3").lower()
    media_folder: str = os.getenv("MEDIA_FOLDER", "listings")
    s3_bucket_media: str = os.getenv("S3_BUCKET_MEDIA", "listing-media-dev")
    media_public_base_url: str = os.getenv("MEDIA_PUBLIC_BASE_URL", "")
    cloudinary_cloud_name: str = os.getenv("CLOUDINARY_CLOUD_NAME", "")
    cloudinary_api_key: str = os.getenv("CLOUDINARY_API_KEY", "")
    cloudinary_api_secret: str = os.getenv("CLOUDINARY_API_SECRET", "")
    remote_connect_timeout: float = float(os.getenv("REMOTE_CONNECT_TIMEOUT", "5"))
    remote_read_timeout: float = float(os.getenv("REMOTE_READ_TIMEOUT", "30"))

    # DynamoDB
    ddb_listings: str = os.getenv("DDB_TABLE_LISTINGS", "listings_dev")
    db_connect_timeout: float = float(os.getenv("DB_CONNECT_TIMEOUT", "3"))
    db_read_timeout: float = float(os.getenv("DB_READ_TIMEOUT", "10"))
    aws_max_attempts: int = int(os.getenv("AWS_MAX_ATTEMPTS", "3"))

    # Uploads
    max_upload_bytes: int = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
    orphan_grace_seconds: int = int(os.getenv("ORPHAN_GRACE_SECONDS", "3600"))

    # Auth
    auth_bypass: bool = os.getenv("AUTH_BYPASS", "true").lower() == "true"

settings = Settings()
