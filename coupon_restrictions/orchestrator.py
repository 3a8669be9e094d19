import logging
from typing import List, Mapping, Optional

from .config import Settings, settings
from .logic import evaluate_policy
from .messages import MessageCatalog
from .models import AddressSnapshot, CartState, Coupon, CouponState, Notice, ValidationOutcome
from .storage import CouponStore, CustomerStore

logger = logging.getLogger(__name__)


class ValidationOrchestrator:
    """
    Runs coupon restrictions at two points of the checkout.

    Before checkout the shopper's session snapshot is checked on a best-effort
    basis: anything not yet known is let through. When the checkout form is
    posted every applied coupon is checked again against the submitted
    address, and failures are removed from the cart with a blocking notice.
    """

    def __init__(
        self,
        coupons: Optional[CouponStore] = None,
        customers: Optional[CustomerStore] = None,
        messages: Optional[MessageCatalog] = None,
        config: Optional[Settings] = None,
    ):
        self.coupons = coupons or CouponStore()
        self.customers = customers or CustomerStore()
        self.messages = messages or MessageCatalog()
        self.config = config or settings

    def validate_before_checkout(
        self,
        coupon: Coupon,
        session: Optional[AddressSnapshot],
        valid: bool = True,
        cart: Optional[CartState] = None,
        account_id: Optional[int] = None,
    ) -> bool:
        # already rejected by something else, nothing to add
        if not valid:
            return valid
        return self.check_session(coupon, session, cart, account_id).valid

    def check_session(
        self,
        coupon: Coupon,
        session: Optional[AddressSnapshot],
        cart: Optional[CartState] = None,
        account_id: Optional[int] = None,
    ) -> ValidationOutcome:
        if cart is not None:
            cart.couponStates.setdefault(coupon.code, CouponState.APPLIED)
            if account_id is None:
                account_id = cart.accountId

        # No session yet: keep the coupon, checkout will decide.
        if session is None:
            return ValidationOutcome.ok()

        # blank session fields haven't been filled in yet, so they defer too
        outcome = evaluate_policy(
            coupon,
            session.entered(),
            self.customers,
            account_id,
            self.config.lookup_failure_policy,
        )

        if cart is not None:
            cart.couponStates[coupon.code] = (
                CouponState.SESSION_CHECKED if outcome.valid else CouponState.REJECTED
            )

        if outcome.valid:
            return outcome

        logger.debug("coupon %s failed session check: %s", coupon.code, outcome.reason.value)
        if cart is not None:
            message = self.messages.session_message(outcome)
            if message:
                cart.couponErrors[coupon.code] = message
        return outcome

    def validate_at_checkout(self, cart: CartState, form: Mapping[str, str]) -> List[Notice]:
        """
        Check every applied coupon against the posted checkout fields.

        Returns the notices raised by this submission, one per removed coupon.
        """
        notices: List[Notice] = []
        if not cart.appliedCoupons:
            return notices

        snapshot = AddressSnapshot.from_checkout_form(form)

        for code in list(cart.appliedCoupons):
            coupon = self.coupons.get(code)
            if coupon is None or not self.coupons.is_valid(code):
                logger.debug("skipping coupon %s, not valid in the store", code)
                continue

            cart.couponStates[code] = CouponState.CHECKOUT_VALIDATED
            outcome = evaluate_policy(
                coupon,
                snapshot,
                self.customers,
                cart.accountId,
                self.config.lookup_failure_policy,
            )

            if outcome.valid:
                cart.couponStates[code] = CouponState.ACCEPTED
                continue

            message = self.messages.checkout_message(coupon, outcome)
            notices.append(self.remove_coupon(cart, coupon, message or ""))

        return notices

    def remove_coupon(self, cart: CartState, coupon: Coupon, message: str) -> Notice:
        if coupon.code in cart.appliedCoupons:
            cart.appliedCoupons.remove(coupon.code)
        cart.couponStates[coupon.code] = CouponState.REJECTED

        notice = Notice(code=coupon.code, message=message)
        cart.notices.append(notice)
        cart.refreshTotals = True

        logger.info("removed coupon %s at checkout: %s", coupon.code, message)
        return notice
