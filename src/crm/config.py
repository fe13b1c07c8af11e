"""
RoofCRM Configuration

Centralized settings for the deal workflow service.
"""

import os
from decimal import Decimal, InvalidOperation
from pathlib import Path

from dotenv import load_dotenv

from .deals.financials import DEFAULT_SALES_TAX_RATE, FinancialPolicy

# Load environment variables from .env file
load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class WorkflowConfig:
    """Configuration for the deal workflow service."""

    # Service
    APP_ENV: str = os.getenv("APP_ENV", "development")
    APP_VERSION: str = os.getenv("APP_VERSION", "1.0.0")
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "8091"))

    # Deal records
    DEAL_STORE_BACKEND: str = os.getenv("DEAL_STORE_BACKEND", "memory").lower()
    DATABASE_BACKEND: str = os.getenv("DATABASE_BACKEND", "sqlite").lower()
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")
    SQLITE_PATH: str = os.getenv("SQLITE_PATH", "roofcrm.db")

    # Uploads
    ARTIFACT_STORAGE_BACKEND: str = os.getenv("ARTIFACT_STORAGE_BACKEND", "local").lower()
    ARTIFACT_STORAGE_PATH: Path = Path(os.getenv("ARTIFACT_STORAGE_PATH", "./uploads"))
    AWS_S3_BUCKET: str = os.getenv("AWS_S3_BUCKET", "")
    SIGNED_URL_TTL_SECONDS: int = int(os.getenv("SIGNED_URL_TTL_SECONDS", "3600"))

    # Money
    SALES_TAX_RATE: str = os.getenv("SALES_TAX_RATE", str(DEFAULT_SALES_TAX_RATE))

    # Auth and observability
    AUTH_REQUIRED: bool = _flag("AUTH_REQUIRED", "true")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_STRUCTURED: bool = _flag("LOG_STRUCTURED", "true")
    OTEL_ENABLED: bool = _flag("OTEL_ENABLED", "false")

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    def sales_tax_rate(self) -> Decimal:
        try:
            return Decimal(self.SALES_TAX_RATE)
        except InvalidOperation:
            raise ValueError(f"SALES_TAX_RATE is not a number: {self.SALES_TAX_RATE!r}")

    def financial_policy(self) -> FinancialPolicy:
        return FinancialPolicy(sales_tax_rate=self.sales_tax_rate())

    def validate(self) -> list[str]:
        """Validate configuration and return list of issues."""
        issues = []

        if self.DEAL_STORE_BACKEND not in ("memory", "sql"):
            issues.append(f"ERROR: Unknown DEAL_STORE_BACKEND {self.DEAL_STORE_BACKEND!r}")

        if self.DEAL_STORE_BACKEND == "memory" and self.is_production:
            issues.append("WARNING: In-memory deal store loses data on restart")

        if self.DATABASE_BACKEND == "postgresql" and not self.DATABASE_URL:
            issues.append("ERROR: DATABASE_URL is required for the postgresql backend")

        if self.ARTIFACT_STORAGE_BACKEND == "s3" and not self.AWS_S3_BUCKET:
            issues.append("ERROR: AWS_S3_BUCKET is required for the s3 upload backend")

        try:
            rate = self.sales_tax_rate()
            if not Decimal("0") <= rate < Decimal("1"):
                issues.append(f"ERROR: SALES_TAX_RATE must be a fraction, got {rate}")
        except ValueError as e:
            issues.append(f"ERROR: {e}")

        if not self.AUTH_REQUIRED:
            issues.append("WARNING: AUTH_REQUIRED is off; requests without identity act as admin")

        return issues


# Global config instance
config = WorkflowConfig()
