from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from feeledger.core.enums import ChannelPolicy, Term


class ChannelRule(BaseModel):
    """Allocation rule for one M-Pesa collection shortcode (paybill or till)."""

    shortcode: str
    policy: ChannelPolicy
    # DEDICATED_CATEGORY: the category paid; GENERAL_EXCLUDING: the category skipped
    category_code: Optional[str] = None
    # When set, the shortcode only counts as this channel for this exact bill reference
    bill_reference: Optional[str] = None


DEFAULT_MPESA_CHANNELS: List[ChannelRule] = [
    ChannelRule(
        shortcode="400200",
        policy=ChannelPolicy.DEDICATED_CATEGORY,
        category_code="CMP",
        bill_reference="01109613617800",
    ),
    ChannelRule(shortcode="5669463", policy=ChannelPolicy.GENERAL_EXCLUDING, category_code="CMP"),
    ChannelRule(shortcode="529914", policy=ChannelPolicy.FEE_CODE),
]

DEFAULT_MPESA_FEE_CODES: Dict[str, str] = {
    "TUI": "TUI",
    "MEA": "MEA",
    "TRN": "TRN",
    "EXM": "EXM",
}


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(15, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Country calling code used to turn local MSISDNs (07XX...) into international form
    phone_country_code: str = Field("254", alias="PHONE_COUNTRY_CODE")

    current_academic_year: int = Field(default_factory=lambda: date.today().year, alias="CURRENT_ACADEMIC_YEAR")
    current_term: Term = Field(Term.TERM1, alias="CURRENT_TERM")

    # Max learners updated at once when a class fee schedule is propagated
    propagation_concurrency: int = Field(4, alias="PROPAGATION_CONCURRENCY", ge=1)

    mpesa_channels: List[ChannelRule] = Field(
        default_factory=lambda: list(DEFAULT_MPESA_CHANNELS),
        alias="MPESA_CHANNELS",
    )
    mpesa_fee_codes: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_MPESA_FEE_CODES),
        alias="MPESA_FEE_CODES",
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
