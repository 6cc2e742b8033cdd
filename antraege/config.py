from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    database_url: str = "sqlite:///./antraege.db"
    environment: str = "development"

    # Blob storage (S3 or an S3-compatible endpoint)
    aws_access_key_id: str = "placeholder"
    aws_secret_access_key: str = "placeholder"
    aws_region: str = "eu-central-1"
    s3_bucket_name: str = "placeholder-bucket"
    s3_endpoint_url: Optional[str] = None
    blob_public_base_url: Optional[str] = None
    blob_cache_control_max_age: int = 31536000  # 1 year

    # Antrag attachments
    antrag_upload_prefix: str = "antraege"
    antrag_max_file_size_bytes: int = 10 * 1024 * 1024
    antrag_max_total_size_bytes: int = 25 * 1024 * 1024
    antrag_max_file_count: int = 5
    upload_max_retries: int = 3
    upload_retry_delay_ms: int = 1000

    class Config:
        env_file = ".env"


settings = Settings()
