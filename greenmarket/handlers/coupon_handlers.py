# greenmarket/handlers/coupon_handlers.py
from fastapi import APIRouter, Depends
from ..models.coupon import CouponPreviewRequest
from ..models.user import CurrentUser
from ..services.coupon_service import CouponService
from .dependencies import get_coupon_service, get_current_user

router = APIRouter(prefix="/api/coupons", tags=["coupons"])

@router.post("/validate")
async def validate_coupon(
    request: CouponPreviewRequest,
    user: CurrentUser = Depends(get_current_user),
    coupons: CouponService = Depends(get_coupon_service),
):
    """Preview a coupon's discount without redeeming it"""
    return await coupons.preview(request.code, request.subtotal)
