import logging
from typing import Iterable, List, Optional

from email_validator import EmailNotValidError, validate_email

from .config import settings
from .models import (
    AddressSnapshot,
    Coupon,
    CustomerIdentity,
    CustomerRestrictionType,
    OrderStatus,
    RestrictionReason,
    ValidationOutcome,
)
from .storage import CustomerLookupError, CustomerStore

logger = logging.getLogger(__name__)

RETURNING_ORDER_STATUSES = (OrderStatus.PROCESSING, OrderStatus.COMPLETED)


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def is_valid_email(email: Optional[str], test_environment: Optional[bool] = None) -> bool:
    """
    Syntactic email check, without DNS lookups.

    Special-use domains (.test, .local, ...) are rejected unless
    test_environment is set, and those shoppers have their customer
    restriction deferred like any other malformed email.
    """
    if not email:
        return False
    if test_environment is None:
        test_environment = settings.email_test_environment
    try:
        validate_email(email, check_deliverability=False, test_environment=test_environment)
    except EmailNotValidError:
        return False
    return True


def resolve_identity(
    email: Optional[str],
    store: CustomerStore,
    account_id: Optional[int] = None,
) -> Optional[CustomerIdentity]:
    """
    Resolve who is checking out.

    A logged-in account wins over the posted email. Otherwise an account
    registered to the email decides through its paying-customer flag, and
    only when there is no account is order history consulted.
    Returns None when there is nothing to resolve against yet.
    """
    email = normalize_email(email)

    if account_id is not None:
        account = store.get_account(account_id)
        if account is not None:
            return CustomerIdentity(
                email=account.email,
                accountId=account.accountId,
                isPayingCustomer=account.isPayingCustomer,
            )

    if not is_valid_email(email):
        return None

    account = store.get_account_by_email(email)
    if account is not None:
        return CustomerIdentity(
            email=email,
            accountId=account.accountId,
            isPayingCustomer=account.isPayingCustomer,
        )

    orders = store.find_orders(email, RETURNING_ORDER_STATUSES, limit=1)
    return CustomerIdentity(email=email, hasOrderHistory=len(orders) == 1)


def is_returning_customer(email: str, store: CustomerStore) -> bool:
    identity = resolve_identity(email, store)
    return identity is not None and identity.isReturning


def _customer_reason(restriction: CustomerRestrictionType) -> RestrictionReason:
    if restriction == CustomerRestrictionType.NEW:
        return RestrictionReason.NEW_CUSTOMER
    return RestrictionReason.EXISTING_CUSTOMER


def evaluate_customer_restriction(
    coupon: Coupon,
    email: Optional[str],
    store: CustomerStore,
    account_id: Optional[int] = None,
    lookup_failure_policy: Optional[str] = None,
) -> ValidationOutcome:
    restriction = coupon.customerRestrictionType
    if restriction == CustomerRestrictionType.NONE:
        return ValidationOutcome.ok()

    try:
        identity = resolve_identity(email, store, account_id)
    except CustomerLookupError:
        policy = lookup_failure_policy or settings.lookup_failure_policy
        logger.warning(
            "customer lookup failed for coupon %s, failing %s", coupon.code, policy, exc_info=True
        )
        if policy == "closed":
            return ValidationOutcome.fail(_customer_reason(restriction))
        return ValidationOutcome.ok()

    if identity is None:
        # no usable email yet; checked again once checkout posts one
        logger.debug("coupon %s: customer restriction deferred", coupon.code)
        return ValidationOutcome.ok()

    if restriction == CustomerRestrictionType.NEW and identity.isReturning:
        return ValidationOutcome.fail(RestrictionReason.NEW_CUSTOMER)

    if restriction == CustomerRestrictionType.EXISTING and not identity.isReturning:
        return ValidationOutcome.fail(RestrictionReason.EXISTING_CUSTOMER)

    return ValidationOutcome.ok()


def normalize_postcode(postcode: str) -> str:
    return postcode.strip().upper()


def normalize_postcodes(postcodes: Iterable[str]) -> List[str]:
    return [normalize_postcode(p) for p in postcodes]


def country_allowed(country: str, allowed_countries: List[str]) -> bool:
    # ISO codes compare exactly, "us" is not "US"
    return country in allowed_countries


def postcode_allowed(postcode: str, allowed_postcodes: List[str]) -> bool:
    return normalize_postcode(postcode) in normalize_postcodes(allowed_postcodes)


def evaluate_location_restriction(coupon: Coupon, snapshot: AddressSnapshot) -> ValidationOutcome:
    if not coupon.locationRestrictions:
        return ValidationOutcome.ok()

    address_type = coupon.addressForLocationRestrictions
    outcome = ValidationOutcome.ok()

    # Absent fields can't be validated yet. An empty allow-list means no check.
    country = snapshot.country_for(address_type)
    if country is not None and coupon.countryRestriction:
        if not country_allowed(country, coupon.countryRestriction):
            outcome = ValidationOutcome.fail(RestrictionReason.COUNTRY, address_type)

    # Postcode is checked last and wins when both fail.
    postcode = snapshot.postcode_for(address_type)
    if postcode is not None and coupon.postcodeRestriction:
        if not postcode_allowed(postcode, coupon.postcodeRestriction):
            outcome = ValidationOutcome.fail(RestrictionReason.POSTCODE, address_type)

    logger.debug("coupon %s: location check on %s address -> %s", coupon.code, address_type.value, outcome.reason.value)
    return outcome


def evaluate_policy(
    coupon: Coupon,
    snapshot: AddressSnapshot,
    store: CustomerStore,
    account_id: Optional[int] = None,
    lookup_failure_policy: Optional[str] = None,
) -> ValidationOutcome:
    """
    Customer restriction first, then location.

    The first failing restriction decides the reason, so messages stay
    deterministic when a coupon fails more than one.
    """
    outcome = evaluate_customer_restriction(
        coupon, snapshot.email, store, account_id, lookup_failure_policy
    )
    if not outcome.valid:
        return outcome
    return evaluate_location_restriction(coupon, snapshot)
