"""Seller business profile, read from settings at generation time."""
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from invoicing.config import Settings


class BankDetails(BaseModel):
    account_name: str
    account_number: str
    ifsc: str
    bank_name: str
    branch: str


class BusinessProfile(BaseModel):
    name: str
    address: str
    city: str
    state: str
    pincode: str
    country: str = "India"
    gstin: str
    pan: str
    phone: str
    email: str
    website: str
    bank_details: BankDetails
    default_gst_rate: Decimal = Field(Decimal("18"), ge=0, le=100)
    terms: List[str] = Field(default_factory=list)
    state_code: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "BusinessProfile":
        return cls(
            name=settings.BUSINESS_NAME,
            address=settings.BUSINESS_ADDRESS,
            city=settings.BUSINESS_CITY,
            state=settings.BUSINESS_STATE,
            pincode=settings.BUSINESS_PINCODE,
            country=settings.BUSINESS_COUNTRY,
            gstin=settings.BUSINESS_GSTIN,
            pan=settings.BUSINESS_PAN,
            phone=settings.BUSINESS_PHONE,
            email=settings.BUSINESS_EMAIL,
            website=settings.BUSINESS_WEBSITE,
            bank_details=BankDetails(
                account_name=settings.BANK_ACCOUNT_NAME,
                account_number=settings.BANK_ACCOUNT_NUMBER,
                ifsc=settings.BANK_IFSC,
                bank_name=settings.BANK_NAME,
                branch=settings.BANK_BRANCH,
            ),
            default_gst_rate=settings.DEFAULT_GST_RATE,
            terms=list(settings.INVOICE_TERMS),
        )
