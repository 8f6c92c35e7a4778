"""Configuration for the accruals service.

Two layers:
- AppConfig: process configuration read once at startup from the
  environment (and a .env file, when present).
- Settings / SettingsStore: the runtime-mutable account codes, sales tax
  name and auto-approve flag. Administrators change these through
  POST /api/settings; the last writer wins.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

env_path = Path(__file__).resolve().parents[1] / ".env"
if env_path.exists():
    load_dotenv(env_path)


DEFAULT_SCOPES = [
    "offline_access",
    "accounting.settings",
    "accounting.transactions",
    "accounting.contacts",
]


class ReconcileMode(str, Enum):
    """Baseline a bill's net amount is compared against."""
    ORIGINAL = "original"    # Full accrued total, every bill
    REMAINING = "remaining"  # Accrued total less bills already reconciled


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() == "true"


# =============================================================================
# Process Configuration
# =============================================================================

@dataclass
class AppConfig:
    """Process-wide configuration.

    Attributes:
        xero_client_id: OAuth client ID of the Xero app
        xero_client_secret: OAuth client secret of the Xero app
        xero_redirect_uri: Callback URL registered with Xero
        webhook_key: Pre-shared key used to sign webhook deliveries
        reconcile_mode: Whether bills diff against the original or remaining accrual
    """
    xero_client_id: str = ""
    xero_client_secret: str = ""
    xero_redirect_uri: str = "http://localhost:8000/callback"
    xero_scopes: List[str] = field(default_factory=lambda: list(DEFAULT_SCOPES))
    webhook_key: Optional[str] = None
    token_encryption_key: Optional[str] = None
    token_store_path: str = ".tokens"
    reconcile_mode: ReconcileMode = ReconcileMode.ORIGINAL
    api_timeout_seconds: int = 30
    api_max_retries: int = 0
    log_level: str = "INFO"
    log_json: bool = False

    # Initial runtime settings
    revenue_code: str = "400"
    cost_code: str = "500"
    accrual_code: str = "850"
    sales_tax_name: str = "20% (VAT on Income)"
    auto_approve_bills: bool = True

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Build configuration from environment variables."""
        scopes = os.getenv("XERO_SCOPES")
        mode = os.getenv("RECONCILE_AGAINST", ReconcileMode.ORIGINAL.value).strip().lower()
        try:
            reconcile_mode = ReconcileMode(mode)
        except ValueError:
            raise ValueError(
                f"RECONCILE_AGAINST must be one of "
                f"{[m.value for m in ReconcileMode]}, got {mode!r}"
            )

        return cls(
            xero_client_id=os.getenv("XERO_CLIENT_ID", ""),
            xero_client_secret=os.getenv("XERO_CLIENT_SECRET", ""),
            xero_redirect_uri=os.getenv("XERO_REDIRECT_URI", "http://localhost:8000/callback"),
            xero_scopes=scopes.split() if scopes else list(DEFAULT_SCOPES),
            webhook_key=os.getenv("XERO_WEBHOOK_KEY") or None,
            token_encryption_key=os.getenv("TOKEN_ENCRYPTION_KEY") or None,
            token_store_path=os.getenv("TOKEN_STORE_PATH", ".tokens"),
            reconcile_mode=reconcile_mode,
            api_timeout_seconds=int(os.getenv("XERO_API_TIMEOUT", "30")),
            api_max_retries=int(os.getenv("XERO_MAX_RETRIES", "0")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_json=_env_bool("LOG_JSON", False),
            revenue_code=os.getenv("MEDIA_REVENUE_CODE", "400"),
            cost_code=os.getenv("MEDIA_COST_CODE", "500"),
            accrual_code=os.getenv("MEDIA_ACCRUAL_CONTROL_CODE", "850"),
            sales_tax_name=os.getenv("SALES_TAX_NAME", "20% (VAT on Income)"),
            auto_approve_bills=_env_bool("AUTO_APPROVE_BILLS", True),
        )

    def initial_settings(self) -> "Settings":
        return Settings(
            revenue_code=self.revenue_code,
            cost_code=self.cost_code,
            accrual_code=self.accrual_code,
            sales_tax_name=self.sales_tax_name,
            auto_approve_bills=self.auto_approve_bills,
        )


# =============================================================================
# Runtime Settings
# =============================================================================

class Settings(BaseModel):
    """Runtime account codes and switches, read by onboarding and reconciliation."""
    revenue_code: str = Field("400", alias="revenueCode")
    cost_code: str = Field("500", alias="costCode")
    accrual_code: str = Field("850", alias="accrualCode")
    sales_tax_name: str = Field("20% (VAT on Income)", alias="salesTaxName")
    auto_approve_bills: bool = Field(True, alias="autoApproveBills")

    class Config:
        populate_by_name = True
        frozen = True

    def to_api(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

    def describe(self) -> str:
        return (
            f"Rev {self.revenue_code}, Cost {self.cost_code}, Accrual {self.accrual_code}, "
            f'VAT "{self.sales_tax_name}", AutoApprove {self.auto_approve_bills}'
        )


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


class SettingsStore:
    """Holds the current Settings snapshot.

    Updates replace the snapshot wholesale, so a reader that took a snapshot
    at the start of an operation keeps a consistent view for its duration.
    """

    _STRING_FIELDS = {
        "revenueCode": "revenue_code",
        "costCode": "cost_code",
        "accrualCode": "accrual_code",
        "salesTaxName": "sales_tax_name",
    }

    def __init__(self, initial: Optional[Settings] = None):
        self._settings = initial or Settings()

    @property
    def current(self) -> Settings:
        return self._settings

    def update(self, changes: Dict[str, Any]) -> Settings:
        """Merge recognized keys into the settings.

        Blank or absent values keep the current value. Unrecognized keys are
        ignored. No account-code existence check is made here.
        """
        data = self._settings.model_dump()

        for key, attr in self._STRING_FIELDS.items():
            value = changes.get(key)
            if not _is_blank(value):
                data[attr] = str(value).strip()

        flag = changes.get("autoApproveBills")
        if not _is_blank(flag):
            data["auto_approve_bills"] = _coerce_bool(flag)

        self._settings = Settings(**data)
        return self._settings
