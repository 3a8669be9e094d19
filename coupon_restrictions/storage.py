from typing import Dict, Iterable, List, Optional

from .models import Account, Coupon, Order, OrderStatus

# code -> Coupon
COUPONS_DB: Dict[str, Coupon] = {}

# lower-cased email -> Account
ACCOUNTS_DB: Dict[str, Account] = {}

ORDERS_DB: List[Order] = []


class CustomerLookupError(Exception):
    """Raised by a customer store when accounts or orders cannot be read."""


class CouponStore:
    def __init__(self, coupons: Optional[Dict[str, Coupon]] = None):
        self.coupons = COUPONS_DB if coupons is None else coupons

    def get(self, code: str) -> Optional[Coupon]:
        return self.coupons.get(code)

    def __contains__(self, code: str) -> bool:
        return code in self.coupons

    def is_valid(self, code: str) -> bool:
        return code in self.coupons

    def add(self, coupon: Coupon) -> None:
        self.coupons[coupon.code] = coupon

    def all(self) -> List[Coupon]:
        return list(self.coupons.values())


class CustomerStore:
    def __init__(
        self,
        accounts: Optional[Dict[str, Account]] = None,
        orders: Optional[List[Order]] = None,
    ):
        self.accounts = ACCOUNTS_DB if accounts is None else accounts
        self.orders = ORDERS_DB if orders is None else orders

    def get_account_by_email(self, email: str) -> Optional[Account]:
        return self.accounts.get(email.strip().lower())

    def get_account(self, account_id: int) -> Optional[Account]:
        for account in self.accounts.values():
            if account.accountId == account_id:
                return account
        return None

    def find_orders(self, email: str, statuses: Iterable[OrderStatus], limit: Optional[int] = None) -> List[Order]:
        email = email.strip().lower()
        wanted = set(statuses)
        found: List[Order] = []
        for order in self.orders:
            if order.email.lower() == email and order.status in wanted:
                found.append(order)
                if limit is not None and len(found) >= limit:
                    break
        return found

    def add_account(self, account: Account) -> None:
        self.accounts[account.email.strip().lower()] = account

    def add_order(self, order: Order) -> None:
        self.orders.append(order)


def reset() -> None:
    COUPONS_DB.clear()
    ACCOUNTS_DB.clear()
    ORDERS_DB.clear()
