"""
Vastu Samadhan Registration — Configuration via environment variables.
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """All settings read from env / .env file."""

    # Database (local analytics archive)
    database_url: str = Field(
        default="sqlite+aiosqlite:///./vastu.db",
        description="Async SQLAlchemy DB URL",
    )

    # Firebase: hosted record store + blob storage
    firebase_cred_path: str = Field(
        default="", description="Path to Firebase service account key JSON"
    )
    firebase_db_url: str = Field(
        default="https://vastu-samadhan-default-rtdb.firebaseio.com",
        description="Firebase RTDB URL",
    )
    firebase_storage_bucket: str = Field(
        default="vastu-samadhan.appspot.com",
        description="Cloud Storage bucket for floor plan uploads",
    )
    firebase_db_secret: str = Field(
        default="", description="RTDB auth token appended to beacon POSTs (optional)"
    )
    make_uploads_public: bool = Field(
        default=True, description="Mark uploaded floor plans world-readable"
    )

    # Hosted tables (RTDB top-level nodes)
    registrations_table: str = Field(default="registrations")
    analytics_table: str = Field(default="page_analytics")

    # Form rules
    max_upload_bytes: int = Field(default=10 * 1024 * 1024)

    # Analytics
    bounce_threshold_secs: float = Field(
        default=30.0, description="Visits shorter than this are recorded as bounces"
    )
    beacon_timeout_secs: float = Field(default=10.0)
    max_page_views: int = Field(
        default=1000, description="Live page views kept in memory before the oldest is evicted"
    )
    archive_interval: int = Field(
        default=3600, description="Seconds between analytics archive runs"
    )

    # Session cookie
    session_cookie_name: str = Field(default="analytics_session_id")

    debug: bool = Field(default=False)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def beacon_endpoint(self) -> str:
        """REST endpoint that unload beacons are POSTed to."""
        url = f"{self.firebase_db_url.rstrip('/')}/{self.analytics_table}.json"
        if self.firebase_db_secret:
            url += f"?auth={self.firebase_db_secret}"
        return url


settings = Settings()
