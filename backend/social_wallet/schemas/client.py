"""API client registration schemas"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator
from urllib.parse import urlparse


class SubscriptionTier(str, Enum):
    BASIC = "basic"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


class ClientCreate(BaseModel):
    client_name: str = Field(..., min_length=1, max_length=100)
    callback_urls: List[str] = Field(..., min_length=1)
    subscription_tier: SubscriptionTier = SubscriptionTier.BASIC

    @field_validator("callback_urls")
    @classmethod
    def validate_callback_urls(cls, v):
        """Every callback must be an absolute http(s) URL"""
        for url in v:
            parsed = urlparse(url)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ValueError(f"Invalid callback URL: {url}")
        return v


class ClientCredentials(BaseModel):
    """Returned once at registration; the secret cannot be retrieved later"""
    client_id: str
    client_secret: str
    client_name: str
    subscription_tier: str
    monthly_fee: float
    request_limit: int
    current_period_end: Optional[datetime]
