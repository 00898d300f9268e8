# src/settings.py
"""
Service settings, read from the environment (a local .env is loaded first).
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

_DEFAULT_LIMITS_FILE = Path(__file__).parent / "engine" / "usage_limits.yaml"


@dataclass
class DatabaseSettings:
    url: str = os.getenv("DATABASE_URL", "sqlite:///./lilyseo.db")


@dataclass
class AuthSettings:
    jwt_secret: str = os.getenv("SUPABASE_JWT_SECRET", "")
    jwt_audience: str = os.getenv("SUPABASE_JWT_AUDIENCE", "authenticated")
    cron_secret: str = os.getenv("CRON_SECRET", "")
    scheduler_api_key: str = os.getenv("SCHEDULER_API_KEY", "")
    pdf_api_key: str = os.getenv("PDF_API_KEY", "")


@dataclass
class CrawlerSettings:
    base_url: str = (
        os.getenv("CRAWLER_SERVICE_URL")
        or os.getenv("CRAWLER_API_URL")
        or "http://localhost:3001"
    )
    timeout: float = float(os.getenv("CRAWLER_TIMEOUT", "30"))


@dataclass
class SerperSettings:
    api_key: str = os.getenv("SERPER_API_KEY", "")
    url: str = os.getenv("SERPER_URL", "https://google.serper.dev/search")
    timeout: float = float(os.getenv("SERPER_TIMEOUT", "20"))


@dataclass
class AzureOpenAISettings:
    api_key: str = os.getenv("AZURE_OPENAI_API_KEY", "")
    endpoint: str = os.getenv("AZURE_OPENAI_ENDPOINT", "")
    deployment: str = os.getenv("AZURE_OPENAI_DEPLOYMENT", "gpt-4")
    api_version: str = os.getenv("AZURE_OPENAI_API_VERSION", "2023-05-15")
    timeout: float = float(os.getenv("AZURE_OPENAI_TIMEOUT", "60"))

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.endpoint)


@dataclass
class BillingSettings:
    paypal_webhook_id: Optional[str] = os.getenv("PAYPAL_WEBHOOK_ID") or None


@dataclass
class UsageSettings:
    limits_file: str = os.getenv("USAGE_LIMITS_FILE", str(_DEFAULT_LIMITS_FILE))
    # applied when neither the tier nor the free tier has a row for a feature
    missing_limit: int = int(os.getenv("USAGE_MISSING_LIMIT", "0"))


@dataclass
class Settings:
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    auth: AuthSettings = field(default_factory=AuthSettings)
    crawler: CrawlerSettings = field(default_factory=CrawlerSettings)
    serper: SerperSettings = field(default_factory=SerperSettings)
    azure_openai: AzureOpenAISettings = field(default_factory=AzureOpenAISettings)
    billing: BillingSettings = field(default_factory=BillingSettings)
    usage: UsageSettings = field(default_factory=UsageSettings)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
