from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from the project root so it loads regardless of cwd
_BACKEND_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _BACKEND_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str

    # JWT
    secret_key: str
    access_token_expire_minutes: int = 60
    refresh_token_expire_days: int = 7
    algorithm: str = "HS256"

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Business hours (local time in business_timezone)
    business_timezone: str = "America/Guayaquil"
    business_open_hour: int = 8
    business_open_minute: int = 0
    business_close_hour: int = 18
    business_close_minute: int = 0
    break_start_hour: int = 13
    break_start_minute: int = 0
    break_end_hour: int = 14
    break_end_minute: int = 0
    # Comma-separated weekday numbers, Monday=0 ... Sunday=6
    closed_weekdays: str = "6"
    slot_step_minutes: int = 15
    default_duration_minutes: int = 60
    # Span a closed availability record occupies from its timestamp
    blocked_span_minutes: int = 60
    # When true, any closed record on a day closes the whole day
    block_whole_day: bool = False

    # Google Drive (OAuth client + long-lived refresh token)
    google_drive_client_id: str = ""
    google_drive_client_secret: str = ""
    google_drive_redirect_uri: str = ""
    google_drive_refresh_token: str = ""
    google_drive_gallery_folder_id: str = ""
    google_drive_services_folder_id: str = ""
    google_drive_before_after_folder_id: str = ""
    google_drive_default_folder_id: str = ""
    drive_folder_prefix: str = "Rachell"
    drive_max_retries: int = 3
    drive_retry_base_seconds: float = 1.0
    drive_url_cache_ttl_seconds: int = 24 * 60 * 60
    drive_token_check_minutes: int = 30
    # Key for encrypting stored OAuth tokens; falls back to secret_key
    token_encryption_key: str = ""
    oauth_state_expire_minutes: int = 10

    # Local upload fallback
    upload_dir: str = "uploads"
    public_base_url: str = "http://localhost:8000"

    # TEMP images older than this are removed by the cleanup loop
    temp_image_retention_hours: int = 24

    # Admin panel, target of the OAuth callback redirect
    frontend_url: str = "http://localhost:3000"

    # Env
    env: str = "development"

    # Email (SMTP). Leave smtp_host empty to disable sending.
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    from_email: str = ""
    from_name: str = "Rachell Nails"
    admin_email: str = ""
    email_logo_url: str = ""
    site_name: str = "Rachell Nails"
    contact_email: str = "contacto@rachellnails.com"
    contact_phone: str = ""
    contact_address: str = "Guayaquil, Ecuador"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def closed_weekdays_set(self) -> set[int]:
        return {int(d) for d in self.closed_weekdays.split(",") if d.strip()}

    @property
    def email_enabled(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password and self.from_email)

    @property
    def notification_email(self) -> str:
        return self.admin_email or self.from_email or self.contact_email


settings = Settings()
