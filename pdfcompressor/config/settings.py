from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    scratch_dir: Path = Path("/tmp/pdfcompressor/scratch")
    output_dir: Path = Path("/tmp/pdfcompressor/output")
    max_upload_bytes: int = 50 * 1024 * 1024

    preferred_backend: str = "convertapi"
    backend_order: str = "convertapi,pdfco,adobe,ghostscript,pymupdf"
    backend_timeout_seconds: int = 120

    convertapi_secret: str = ""
    convertapi_base_url: str = "https://v2.convertapi.com"

    pdfco_api_key: str = ""
    pdfco_base_url: str = "https://api.pdf.co"

    adobe_client_id: str = ""
    adobe_client_secret: str = ""
    adobe_organization_id: str = ""
    adobe_base_url: str = "https://pdf-services.adobe.io"
    adobe_ims_url: str = "https://ims-na1.adobelogin.com/ims/token/v3"
    adobe_poll_interval_seconds: float = 2.0

    ghostscript_binary: str = "gs"
    pymupdf_enabled: bool = True

    record_usage: bool = False
    db_host: str = "localhost"
    db_port: int = 5432
    db_database: str = "pdfcompressor"
    db_username: str = "pdfcompressor"
    db_password: str = "secret"

    file_retention_seconds: int = 24 * 60 * 60
    record_retention_days: int = 7

    @property
    def backend_ids(self) -> list[str]:
        """Backend identifiers from backend_order, lowercased, blanks dropped."""
        return [
            name.strip().lower()
            for name in self.backend_order.split(",")
            if name.strip()
        ]
