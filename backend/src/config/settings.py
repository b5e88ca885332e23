"""
Application settings configuration for the lodge chancellor backend.

Centralized settings loaded from environment variables.
"""

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings


CHARITY_EDIT_POLICIES = ("skip", "update")


class AppSettings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment Variables:
        LODGE_ROLLING_WINDOW: Finalized sessions averaged for the rolling
            attendance percentage (default: 5)
        LODGE_ALERT_WINDOW: Most recent finalized sessions a member must have
            missed to raise a frequency alert (default: 3, at most the
            rolling window)
        LODGE_CHARITY_CATEGORY: Ledger category for beneficence collections
            (default: "Beneficence Collection")
        LODGE_CASH_ACCOUNT_TYPE: Account type preferred for beneficence
            deposits (default: "cash")
        LODGE_CHARITY_EDIT_POLICY: What an edited session does to the ledger:
            "skip" leaves the original transaction untouched, "update" rewrites
            the linked transaction amount (default: "skip")
        LODGE_CORS_ORIGINS: Comma-separated allowed origins for the dashboard
    """

    rolling_window: int = Field(
        default=5,
        validation_alias="LODGE_ROLLING_WINDOW",
        ge=1,
        le=52,
    )

    alert_window: int = Field(
        default=3,
        validation_alias="LODGE_ALERT_WINDOW",
        ge=1,
        le=52,
    )

    charity_category: str = Field(
        default="Beneficence Collection",
        validation_alias="LODGE_CHARITY_CATEGORY",
        min_length=1,
        max_length=120,
        description="Category assigned to mirrored beneficence transactions"
    )

    cash_account_type: str = Field(
        default="cash",
        validation_alias="LODGE_CASH_ACCOUNT_TYPE",
        description="Account type that receives beneficence collections"
    )

    charity_edit_policy: str = Field(
        default="skip",
        validation_alias="LODGE_CHARITY_EDIT_POLICY",
        description="Ledger behaviour when an already finalized session is edited"
    )

    cors_origins: str = Field(
        default="http://localhost:5173,http://127.0.0.1:5173",
        validation_alias="LODGE_CORS_ORIGINS",
    )

    class Config:
        env_file = ".env"
        extra = "ignore"

    @field_validator("charity_edit_policy")
    @classmethod
    def validate_charity_edit_policy(cls, v: str) -> str:
        """Restrict the edit policy to the supported values."""
        v = v.strip().lower()
        if v not in CHARITY_EDIT_POLICIES:
            raise ValueError(
                f"LODGE_CHARITY_EDIT_POLICY must be one of: {', '.join(CHARITY_EDIT_POLICIES)}"
            )
        return v

    @model_validator(mode="after")
    def validate_windows(self) -> "AppSettings":
        """The alert window is drawn from the rolling window."""
        if self.alert_window > self.rolling_window:
            raise ValueError("LODGE_ALERT_WINDOW cannot exceed LODGE_ROLLING_WINDOW")
        return self

    @property
    def cors_origins_list(self) -> List[str]:
        """Get the allowed CORS origins as a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache()
def get_settings() -> AppSettings:
    """
    Get cached application settings instance.

    Returns:
        AppSettings: Configured application settings from environment
    """
    return AppSettings()
