"""Application settings loaded from environment variables."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings

DEFAULT_JOB_TEMPLATE = Path(__file__).parent / "job.template.yaml"

DatabaseType = Literal["sqlite", "postgres", "mysql"]


class Settings(BaseSettings):
    """scanner-operator settings.

    Variables are read without a prefix. Example: DATABASE_TYPE=postgres
    DSN=postgresql+psycopg2://scanner:secret@db:5432/scanner
    """

    database_type: DatabaseType = "sqlite"
    dsn: str = "scanner.db"

    http_host: str = "0.0.0.0"
    http_port: int = 8000

    requeue_after_seconds: float = 10.0  # Scanner timer interval
    scan_label: str = "security-scan"  # pods labelled <scan_label>=false are skipped
    job_template_path: Path = DEFAULT_JOB_TEMPLATE
    report_url: str = "http://scanner-operator.scanner-system.svc:8000/scan-results"

    subscriber_queue_size: int = 1
    log_level: str = "INFO"

    model_config = {"env_prefix": ""}
