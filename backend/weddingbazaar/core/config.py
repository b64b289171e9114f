from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, field_validator, model_validator
from typing import Any, ClassVar, Optional
import json
from pathlib import Path
import os


class PlanLimitTable(BaseModel):
    """Versioned tier -> max_services table. ``None`` means unlimited."""

    version: str
    max_services: dict[str, Optional[int]]

    @field_validator("max_services")
    def limits_are_non_negative(cls, v: dict[str, Optional[int]]) -> dict[str, Optional[int]]:
        for tier, limit in v.items():
            if limit is not None and limit < 0:
                raise ValueError(f"max_services for {tier} must be >= 0 or null")
        return v

    def limit_for(self, tier: str) -> Optional[int]:
        # Tiers missing from an override fall back to the free allowance
        if tier in self.max_services:
            return self.max_services[tier]
        return self.max_services.get("free", 0)


DEFAULT_PLAN_LIMITS = PlanLimitTable(
    version="2025-10",
    max_services={
        "free": 5,
        "basic": 15,
        "premium": 50,
        "pro": None,
        "enterprise": None,
    },
)


class Settings(BaseSettings):
    API_V1_STR: str = "/api/v1"

    # Use an absolute path so running the app from the repo root or from
    # backend/ resolves the same DB file.
    BASE_DIR: ClassVar[Path] = Path(__file__).resolve().parents[2]
    SQLALCHEMY_DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'bazaar.db'}"

    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    LOG_LEVEL: str = "INFO"

    # Booking money is PHP centavos unless a booking says otherwise
    DEFAULT_CURRENCY: str = "PHP"

    # Required down payment as a percentage of the accepted quote total
    DOWNPAYMENT_PERCENT: int = 30
    # Days before the event when an outstanding balance becomes due
    FINAL_PAYMENT_DUE_DAYS: int = 14

    RECEIPT_PREFIX: str = "RCP"
    BOOKING_REFERENCE_PREFIX: str = "WB"

    # JSON override for the plan-limit table, e.g.
    # {"version": "staging-1", "max_services": {"free": 2, "pro": null}}
    PLAN_LIMITS: Optional[PlanLimitTable] = None

    model_config = SettingsConfigDict(extra="ignore", case_sensitive=True)

    @field_validator("CORS_ORIGINS", mode="before")
    def split_origins(cls, v: Any) -> list[str]:
        """Parse comma-separated or JSON list of origins from environment."""
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return parsed
            except json.JSONDecodeError:
                pass
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @field_validator("PLAN_LIMITS", mode="before")
    def parse_plan_limits(cls, v: Any) -> Any:
        if isinstance(v, str):
            if not v.strip():
                return None
            return json.loads(v)
        return v

    @field_validator("DOWNPAYMENT_PERCENT")
    def downpayment_in_range(cls, v: int) -> int:
        if not 0 <= v <= 100:
            raise ValueError("DOWNPAYMENT_PERCENT must be between 0 and 100")
        return v

    @model_validator(mode="after")
    def normalise_currency(cls, values: "Settings") -> "Settings":
        values.DEFAULT_CURRENCY = values.DEFAULT_CURRENCY.strip().upper()
        return values

    @property
    def plan_limits(self) -> PlanLimitTable:
        return self.PLAN_LIMITS or DEFAULT_PLAN_LIMITS


def load_settings() -> "Settings":
    return Settings(_env_file=os.getenv("ENV_FILE", str(Path(__file__).resolve().parents[3] / ".env")))


settings = load_settings()
