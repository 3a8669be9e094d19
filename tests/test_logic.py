import pytest

from coupon_restrictions.logic import (
    evaluate_customer_restriction,
    evaluate_location_restriction,
    evaluate_policy,
    is_returning_customer,
    is_valid_email,
    postcode_allowed,
    resolve_identity,
)
from coupon_restrictions.models import (
    Account,
    AddressSnapshot,
    AddressType,
    Coupon,
    Order,
    OrderStatus,
    RestrictionReason,
)
from coupon_restrictions.storage import CustomerLookupError, CustomerStore

RETURNING = "returning@mailbox.org"
NEW = "newcomer@mailbox.org"


class FailingCustomerStore(CustomerStore):
    def get_account_by_email(self, email):
        raise CustomerLookupError("accounts table unavailable")


def location_coupon(**fields) -> Coupon:
    fields.setdefault("locationRestrictions", True)
    return Coupon(code="SHIP5", **fields)


def test_returning_customer_from_order_history(customers: CustomerStore) -> None:
    assert is_returning_customer(RETURNING, customers) is True
    assert is_returning_customer(NEW, customers) is False


def test_returning_customer_email_is_case_insensitive(customers: CustomerStore) -> None:
    assert is_returning_customer("  Returning@MAILBOX.org ", customers) is True


def test_only_processing_and_completed_orders_count(customers: CustomerStore) -> None:
    customers.add_order(Order(orderId=2, email=NEW, status=OrderStatus.PENDING))
    customers.add_order(Order(orderId=3, email=NEW, status=OrderStatus.CANCELLED))
    assert is_returning_customer(NEW, customers) is False

    customers.add_order(Order(orderId=4, email=NEW, status=OrderStatus.PROCESSING))
    assert is_returning_customer(NEW, customers) is True


def test_account_paying_flag_is_the_verdict(customers: CustomerStore) -> None:
    # has a completed order, but the account says not paying
    customers.add_account(Account(accountId=7, email=RETURNING, isPayingCustomer=False))
    assert is_returning_customer(RETURNING, customers) is False

    customers.add_account(Account(accountId=8, email=NEW, isPayingCustomer=True))
    assert is_returning_customer(NEW, customers) is True


def test_logged_in_account_wins_over_posted_email(customers: CustomerStore) -> None:
    customers.add_account(Account(accountId=9, email="member@mailbox.org", isPayingCustomer=True))

    identity = resolve_identity(NEW, customers, account_id=9)
    assert identity is not None
    assert identity.accountId == 9
    assert identity.isReturning is True


def test_unknown_account_id_falls_back_to_email(customers: CustomerStore) -> None:
    identity = resolve_identity(RETURNING, customers, account_id=404)
    assert identity is not None
    assert identity.accountId is None
    assert identity.isReturning is True


def test_resolve_identity_needs_a_valid_email(customers: CustomerStore) -> None:
    assert resolve_identity("not-an-email", customers) is None
    assert resolve_identity(None, customers) is None


def test_is_valid_email() -> None:
    assert is_valid_email("jane.doe@mailbox.org")
    assert not is_valid_email("jane.doe@")
    assert not is_valid_email("")
    assert not is_valid_email(None)


@pytest.mark.parametrize("email", [RETURNING, NEW, "garbage", None])
def test_no_customer_restriction_is_always_valid(customers: CustomerStore, email) -> None:
    coupon = Coupon(code="FREE", customerRestrictionType="none")
    outcome = evaluate_customer_restriction(coupon, email, customers)
    assert outcome.valid
    assert outcome.reason == RestrictionReason.NONE


def test_new_customer_restriction(customers: CustomerStore) -> None:
    coupon = Coupon(code="SAVE10", customerRestrictionType="new")

    assert evaluate_customer_restriction(coupon, NEW, customers).valid

    outcome = evaluate_customer_restriction(coupon, RETURNING, customers)
    assert not outcome.valid
    assert outcome.reason == RestrictionReason.NEW_CUSTOMER


def test_existing_customer_restriction(customers: CustomerStore) -> None:
    coupon = Coupon(code="LOYAL", customerRestrictionType="existing")

    assert evaluate_customer_restriction(coupon, RETURNING, customers).valid

    outcome = evaluate_customer_restriction(coupon, NEW, customers)
    assert not outcome.valid
    assert outcome.reason == RestrictionReason.EXISTING_CUSTOMER


@pytest.mark.parametrize("email", ["", "returning", "returning@", None])
def test_malformed_email_defers_customer_restriction(customers: CustomerStore, email) -> None:
    coupon = Coupon(code="LOYAL", customerRestrictionType="existing")
    assert evaluate_customer_restriction(coupon, email, customers).valid


def test_lookup_failure_can_fail_open() -> None:
    store = FailingCustomerStore(accounts={}, orders=[])
    coupon = Coupon(code="SAVE10", customerRestrictionType="new")

    outcome = evaluate_customer_restriction(coupon, NEW, store, lookup_failure_policy="open")
    assert outcome.valid


def test_lookup_failure_can_fail_closed() -> None:
    store = FailingCustomerStore(accounts={}, orders=[])
    coupon = Coupon(code="LOYAL", customerRestrictionType="existing")

    outcome = evaluate_customer_restriction(coupon, NEW, store, lookup_failure_policy="closed")
    assert not outcome.valid
    assert outcome.reason == RestrictionReason.EXISTING_CUSTOMER


def test_location_disabled_skips_everything() -> None:
    coupon = location_coupon(locationRestrictions=False, countryRestriction=["CA"], postcodeRestriction="90210")
    snapshot = AddressSnapshot(shippingCountry="US", shippingPostcode="10001")
    assert evaluate_location_restriction(coupon, snapshot).valid


def test_country_match_is_case_sensitive() -> None:
    coupon = location_coupon(countryRestriction=["US"])

    assert evaluate_location_restriction(coupon, AddressSnapshot(shippingCountry="US")).valid

    outcome = evaluate_location_restriction(coupon, AddressSnapshot(shippingCountry="us"))
    assert not outcome.valid
    assert outcome.reason == RestrictionReason.COUNTRY
    assert outcome.addressType == AddressType.SHIPPING


def test_postcode_match_ignores_case_and_whitespace() -> None:
    assert postcode_allowed("AB1 2CD", [" ab1 2cd "])
    assert postcode_allowed(" ab1 2cd", ["AB1 2CD"])
    assert not postcode_allowed("AB1", ["AB1 2CD"])


def test_postcode_has_no_prefix_matching() -> None:
    coupon = location_coupon(postcodeRestriction="902")
    outcome = evaluate_location_restriction(coupon, AddressSnapshot(shippingPostcode="90210"))
    assert outcome.reason == RestrictionReason.POSTCODE


def test_missing_fields_are_not_rejected() -> None:
    coupon = location_coupon(countryRestriction=["CA"], postcodeRestriction="H2X 1Y4")
    assert evaluate_location_restriction(coupon, AddressSnapshot()).valid
    assert evaluate_location_restriction(coupon, AddressSnapshot(email=NEW)).valid


def test_empty_allow_lists_skip_their_check() -> None:
    coupon = location_coupon(countryRestriction=[], postcodeRestriction="")
    snapshot = AddressSnapshot(shippingCountry="", shippingPostcode="")
    assert evaluate_location_restriction(coupon, snapshot).valid


def test_postcode_reported_when_both_fail() -> None:
    coupon = location_coupon(countryRestriction=["CA"], postcodeRestriction="H2X 1Y4")
    snapshot = AddressSnapshot(shippingCountry="US", shippingPostcode="90210")

    outcome = evaluate_location_restriction(coupon, snapshot)
    assert not outcome.valid
    assert outcome.reason == RestrictionReason.POSTCODE


def test_billing_address_type_reads_billing_fields() -> None:
    coupon = location_coupon(addressForLocationRestrictions="billing", countryRestriction=["CA"])
    snapshot = AddressSnapshot(billingCountry="US", shippingCountry="CA")

    outcome = evaluate_location_restriction(coupon, snapshot)
    assert outcome.reason == RestrictionReason.COUNTRY
    assert outcome.addressType == AddressType.BILLING


def test_policy_checks_customer_before_location(customers: CustomerStore) -> None:
    coupon = Coupon(
        code="SAVE10",
        customerRestrictionType="new",
        locationRestrictions=True,
        countryRestriction=["CA"],
    )
    snapshot = AddressSnapshot(email=RETURNING, shippingCountry="US")

    outcome = evaluate_policy(coupon, snapshot, customers)
    assert outcome.reason == RestrictionReason.NEW_CUSTOMER


def test_policy_evaluates_location_when_customer_passes(customers: CustomerStore) -> None:
    coupon = Coupon(
        code="SAVE10",
        customerRestrictionType="new",
        locationRestrictions=True,
        countryRestriction=["CA"],
    )
    snapshot = AddressSnapshot(email=NEW, shippingCountry="US")

    outcome = evaluate_policy(coupon, snapshot, customers)
    assert outcome.reason == RestrictionReason.COUNTRY


def test_policy_is_idempotent(customers: CustomerStore) -> None:
    coupon = Coupon(code="LOYAL", customerRestrictionType="existing", locationRestrictions=True, postcodeRestriction="90210")
    snapshot = AddressSnapshot(email=NEW, shippingPostcode="10001")

    assert evaluate_policy(coupon, snapshot, customers) == evaluate_policy(coupon, snapshot, customers)


def test_special_use_email_domains_need_test_environment() -> None:
    assert not is_valid_email("shopper@store.test", test_environment=False)
    assert is_valid_email("shopper@store.test", test_environment=True)


def test_special_use_email_domain_defers_customer_restriction(customers: CustomerStore) -> None:
    coupon = Coupon(code="LOYAL", customerRestrictionType="existing")
    assert evaluate_customer_restriction(coupon, "shopper@store.test", customers).valid
