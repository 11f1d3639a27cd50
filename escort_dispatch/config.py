# escort_dispatch/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Literal


DEFAULT_CARRIER_SMS_DOMAINS: dict[str, str] = {
    "verizon": "vtext.com",
    "at&t": "txt.att.net",
    "tmobile": "tmomail.net",
    "sprint": "messaging.sprintpcs.com",
    "virgin mobile": "vmobl.com",
    "boost mobile": "sms.myboostmobile.com",
    "cricket": "sms.cricketwireless.net",
    "metro pcs": "mymetropcs.com",
    "us cellular": "email.uscc.net",
    "google fi": "msg.fi.google.com",
    "xfinity mobile": "vtext.com",
    "spectrum mobile": "vtext.com",
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_env: Literal["dev", "staging", "prod"] = "dev"
    log_level: str = "INFO"
    log_json: bool = False  # Forced on in prod

    # Optional JSON snapshot of the Requests/Riders/Assignments collections,
    # loaded into the in-memory record store at startup
    data_snapshot_path: str | None = None

    # Security
    admin_token: str | None = None  # When unset, HTTP admin endpoints are open (dev only)

    # Per-invocation record cache
    cache_ttl_seconds: int = 300  # 5 minutes

    # Bulk notifications
    bulk_batch_size: int = 5  # Pause after every N processed targets
    bulk_pause_seconds: float = 1.0  # Upstream sending quota
    bulk_error_cap: int = 10  # Error strings kept in a batch result

    # SMS (email-to-SMS relay)
    default_sms_domain: str = "vtext.com"  # Used for unknown/blank carriers
    carrier_sms_domains: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_CARRIER_SMS_DOMAINS)
    )
    sms_subject: str = "Assignment Notification"
    message_signature: str = "-- Rider Integration and Deployment Engine"

    # Messaging gateway
    # "smtp"     - deliver both channels through the SMTP relay
    # "disabled" - log and drop (local development)
    messaging_backend: Literal["smtp", "disabled"] = "disabled"
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_sender: str | None = None  # Falls back to smtp_user
    smtp_use_tls: bool = True
    smtp_timeout_seconds: int = 30

    # Triggers
    edit_debounce_seconds: float = 1.0  # Edits within this window of the previous one are ignored
    refresh_lock_timeout_seconds: float = 10.0  # Overlapping refreshes are skipped, not retried

    @property
    def is_production(self) -> bool:
        return self.app_env == "prod"

    @property
    def smtp_configured(self) -> bool:
        """Check if the SMTP relay is configured"""
        return bool(self.smtp_host and (self.smtp_sender or self.smtp_user))

    def validate_required_for_production(self) -> list[str]:
        """Validate that required settings exist for production"""
        if not self.is_production:
            return []

        missing = []

        required_fields = [
            ("admin_token", self.admin_token),
        ]

        if self.messaging_backend == "smtp":
            required_fields.extend([
                ("smtp_host", self.smtp_host),
                ("smtp_sender or smtp_user", self.smtp_sender or self.smtp_user),
            ])

        for field_name, value in required_fields:
            if not value:
                missing.append(field_name)

        return missing


settings = Settings()
