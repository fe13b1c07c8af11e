"""
Tests for service configuration.
"""

from decimal import Decimal

import pytest

from src.crm.config import WorkflowConfig


@pytest.fixture
def settings():
    cfg = WorkflowConfig()
    cfg.APP_ENV = "development"
    cfg.DEAL_STORE_BACKEND = "memory"
    cfg.DATABASE_BACKEND = "sqlite"
    cfg.ARTIFACT_STORAGE_BACKEND = "local"
    cfg.SALES_TAX_RATE = "0.0825"
    cfg.AUTH_REQUIRED = True
    return cfg


class TestWorkflowConfig:

    def test_financial_policy(self, settings):
        settings.SALES_TAX_RATE = "0.07"
        assert settings.financial_policy().sales_tax_rate == Decimal("0.07")

    def test_bad_tax_rate(self, settings):
        settings.SALES_TAX_RATE = "seven"
        with pytest.raises(ValueError):
            settings.sales_tax_rate()
        assert any("SALES_TAX_RATE" in issue for issue in settings.validate())

    def test_clean_config_has_no_issues(self, settings):
        assert settings.validate() == []

    def test_s3_needs_bucket(self, settings):
        settings.ARTIFACT_STORAGE_BACKEND = "s3"
        settings.AWS_S3_BUCKET = ""
        assert any("AWS_S3_BUCKET" in issue for issue in settings.validate())

    def test_memory_store_in_production_warns(self, settings):
        settings.APP_ENV = "production"
        assert settings.is_production
        assert any(issue.startswith("WARNING") for issue in settings.validate())
