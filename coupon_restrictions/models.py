from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, field_validator


class CustomerRestrictionType(str, Enum):
    NONE = "none"
    NEW = "new"
    EXISTING = "existing"


class AddressType(str, Enum):
    BILLING = "billing"
    SHIPPING = "shipping"


class RestrictionReason(str, Enum):
    NONE = "none"
    NEW_CUSTOMER = "new_customer"
    EXISTING_CUSTOMER = "existing_customer"
    COUNTRY = "country"
    POSTCODE = "postcode"


class CouponState(str, Enum):
    APPLIED = "applied"
    SESSION_CHECKED = "session_checked"
    CHECKOUT_VALIDATED = "checkout_validated"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class Coupon(BaseModel):
    code: str
    customerRestrictionType: CustomerRestrictionType = CustomerRestrictionType.NONE

    locationRestrictions: bool = False
    addressForLocationRestrictions: AddressType = AddressType.SHIPPING
    countryRestriction: List[str] = Field(default_factory=list)
    postcodeRestriction: List[str] = Field(default_factory=list)

    # Stored meta is loosely typed; unknown values fall back to the defaults.
    @field_validator("customerRestrictionType", mode="before")
    @classmethod
    def _coerce_restriction_type(cls, value: Any) -> CustomerRestrictionType:
        try:
            return CustomerRestrictionType(value)
        except ValueError:
            return CustomerRestrictionType.NONE

    @field_validator("addressForLocationRestrictions", mode="before")
    @classmethod
    def _coerce_address_type(cls, value: Any) -> AddressType:
        try:
            return AddressType(value)
        except ValueError:
            return AddressType.SHIPPING

    @field_validator("locationRestrictions", mode="before")
    @classmethod
    def _coerce_yes_no(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() in ("yes", "true", "1")
        if value is None:
            return False
        return value

    @field_validator("countryRestriction", mode="before")
    @classmethod
    def _coerce_countries(cls, value: Any) -> Any:
        if value is None or value == "":
            return []
        if isinstance(value, str):
            return [value]
        return value

    @field_validator("postcodeRestriction", mode="before")
    @classmethod
    def _split_postcodes(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            value = [value]
        elif not isinstance(value, (list, tuple, set)):
            raise ValueError("postcodes must be a comma-separated string or a list")
        # a trailing comma must not turn into an allowed blank postcode
        postcodes = [str(p).strip() for p in value if p is not None]
        return [p for p in postcodes if p]


class AddressSnapshot(BaseModel):
    email: Optional[str] = None
    billingCountry: Optional[str] = None
    billingPostcode: Optional[str] = None
    shippingCountry: Optional[str] = None
    shippingPostcode: Optional[str] = None

    def country_for(self, address_type: AddressType) -> Optional[str]:
        if address_type == AddressType.BILLING:
            return self.billingCountry
        return self.shippingCountry

    def postcode_for(self, address_type: AddressType) -> Optional[str]:
        if address_type == AddressType.BILLING:
            return self.billingPostcode
        return self.shippingPostcode

    def entered(self) -> "AddressSnapshot":
        """Copy where blank fields count as not entered yet."""
        return self.model_copy(
            update={
                name: None
                for name, value in self.model_dump().items()
                if isinstance(value, str) and not value.strip()
            }
        )

    @classmethod
    def from_checkout_form(cls, form: Mapping[str, Any]) -> "AddressSnapshot":
        """
        Build the authoritative snapshot from posted checkout fields.

        Shipping fields that were not posted fall back to the billing value,
        and anything still missing becomes "" so it takes part in matching.
        """
        def posted(key: str) -> Optional[str]:
            value = form.get(key)
            return None if value is None else str(value)

        billing_country = posted("billing_country")
        billing_postcode = posted("billing_postcode")
        shipping_country = posted("shipping_country")
        shipping_postcode = posted("shipping_postcode")

        if shipping_country is None:
            shipping_country = billing_country
        if shipping_postcode is None:
            shipping_postcode = billing_postcode

        return cls(
            email=posted("billing_email"),
            billingCountry=billing_country or "",
            billingPostcode=billing_postcode or "",
            shippingCountry=shipping_country or "",
            shippingPostcode=shipping_postcode or "",
        )


class Account(BaseModel):
    accountId: int
    email: str
    isPayingCustomer: bool = False


class Order(BaseModel):
    orderId: int
    email: str
    status: OrderStatus


class CustomerIdentity(BaseModel):
    email: Optional[str] = None
    accountId: Optional[int] = None
    isPayingCustomer: bool = False
    hasOrderHistory: bool = False

    @property
    def isReturning(self) -> bool:
        # an account's paying flag is the verdict on its own
        if self.accountId is not None:
            return self.isPayingCustomer
        return self.hasOrderHistory


class ValidationOutcome(BaseModel):
    valid: bool
    reason: RestrictionReason = RestrictionReason.NONE
    addressType: Optional[AddressType] = None

    @classmethod
    def ok(cls) -> "ValidationOutcome":
        return cls(valid=True)

    @classmethod
    def fail(cls, reason: RestrictionReason, address_type: Optional[AddressType] = None) -> "ValidationOutcome":
        return cls(valid=False, reason=reason, addressType=address_type)


class Notice(BaseModel):
    code: str
    message: str
    noticeType: str = "error"


class CartState(BaseModel):
    appliedCoupons: List[str] = Field(default_factory=list)
    couponStates: Dict[str, CouponState] = Field(default_factory=dict)
    couponErrors: Dict[str, str] = Field(default_factory=dict)
    notices: List[Notice] = Field(default_factory=list)
    refreshTotals: bool = False
    accountId: Optional[int] = None


class SessionValidationRequest(BaseModel):
    session: Optional[AddressSnapshot] = None
    accountId: Optional[int] = None


class SessionValidationResponse(BaseModel):
    code: str
    valid: bool
    reason: RestrictionReason
    message: Optional[str] = None


class CheckoutValidationRequest(BaseModel):
    appliedCoupons: List[str]
    form: Dict[str, str] = Field(default_factory=dict)
    accountId: Optional[int] = None


class CheckoutValidationResponse(BaseModel):
    appliedCoupons: List[str]
    notices: List[Notice]
    refreshTotals: bool
    blocked: bool
