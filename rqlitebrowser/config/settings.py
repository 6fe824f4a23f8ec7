"""
Configuration models for rqlitebrowser.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field, HttpUrl, TypeAdapter, field_validator

ConsistencyLevel = Literal["none", "weak", "linearizable", "strong"]

_HTTP_URL = TypeAdapter(HttpUrl)


class RqliteSettings(BaseModel):
    """Remote store connection settings"""

    url: str = "http://localhost:4001"
    username: Optional[str] = None
    password: Optional[str] = None
    timeout: float = Field(default=30.0, gt=0)
    console_timeout: float = Field(default=5.0, gt=0)
    read_consistency: ConsistencyLevel = "none"

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        # Raises on anything that is not an http(s) URL
        _HTTP_URL.validate_python(value)
        return value.rstrip("/")


class TransferSettings(BaseModel):
    """Bulk import/export tuning"""

    csv_batch_size: int = Field(default=1000, gt=0)
    sql_batch_size: int = Field(default=500, gt=0)
    page_size: int = Field(default=5000, gt=0)
    concurrency: int = Field(default=3, gt=0)
    chunk_size: int = Field(default=64 * 1024, gt=0)
    # None leaves the dispatch queue unbounded
    max_pending_batches: Optional[int] = Field(default=16, gt=0)
    encoding: str = "utf-8-sig"
    transaction: bool = True


class LoggingSettings(BaseModel):
    """Logging configuration"""

    level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_to_file: bool = False
    log_file: str = "logs/rqlitebrowser.log"
    rotation: str = "10 MB"
    retention: str = "7 days"


class BrowserSettings(BaseModel):
    """Top-level settings document (rqlitebrowser.json)"""

    rqlite: RqliteSettings = Field(default_factory=RqliteSettings)
    transfer: TransferSettings = Field(default_factory=TransferSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    connections_db: str = "sqlite:///rqlitebrowser.db"
