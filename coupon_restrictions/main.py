import logging
from typing import List

from fastapi import FastAPI, HTTPException

from .config import settings
from .models import (
    CartState,
    CheckoutValidationRequest,
    CheckoutValidationResponse,
    Coupon,
    SessionValidationRequest,
    SessionValidationResponse,
)
from .orchestrator import ValidationOrchestrator
from .storage import CouponStore, CustomerStore

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

# ---------------------------
# FastAPI App & Routes
# ---------------------------

app = FastAPI(title=settings.app_name, version=settings.app_version)

coupon_store = CouponStore()
orchestrator = ValidationOrchestrator(coupons=coupon_store, customers=CustomerStore())


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.post("/coupons", response_model=Coupon)
def register_coupon(coupon: Coupon):
    if coupon.code in coupon_store:
        raise HTTPException(status_code=400, detail="Coupon code already exists")

    coupon_store.add(coupon)
    logger.info("registered restrictions for coupon %s", coupon.code)
    return coupon


@app.get("/coupons", response_model=List[Coupon])
def list_coupons():
    return coupon_store.all()


@app.post("/coupons/{code}/validate", response_model=SessionValidationResponse)
def validate_session(code: str, payload: SessionValidationRequest):
    coupon = coupon_store.get(code)
    if coupon is None:
        raise HTTPException(status_code=404, detail="Coupon not found")

    cart = CartState(appliedCoupons=[code], accountId=payload.accountId)
    outcome = orchestrator.check_session(coupon, payload.session, cart=cart)

    return SessionValidationResponse(
        code=code,
        valid=outcome.valid,
        reason=outcome.reason,
        message=cart.couponErrors.get(code),
    )


@app.post("/checkout/validate", response_model=CheckoutValidationResponse)
def validate_checkout(payload: CheckoutValidationRequest):
    cart = CartState(appliedCoupons=list(payload.appliedCoupons), accountId=payload.accountId)
    notices = orchestrator.validate_at_checkout(cart, payload.form)

    return CheckoutValidationResponse(
        appliedCoupons=cart.appliedCoupons,
        notices=notices,
        refreshTotals=cart.refreshTotals,
        blocked=bool(notices),
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "coupon_restrictions.main:app",
        host="127.0.0.1",
        port=8000,
        reload=False,
    )
