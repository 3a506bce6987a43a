# greenmarket/handlers/admin_handlers.py
from fastapi import APIRouter, Depends
from ..models.coupon import CouponCreate, CouponUpdate
from ..models.user import CurrentUser, UserRole
from ..services.coupon_service import CouponService
from ..services.order_service import OrderService
from .dependencies import get_coupon_service, get_order_service, require_role

router = APIRouter(prefix="/api/admin", tags=["admin"])

admin_only = require_role(UserRole.ADMIN)

@router.get("/stats")
async def stats(
    user: CurrentUser = Depends(admin_only),
    orders: OrderService = Depends(get_order_service),
):
    return await orders.get_stats()

@router.get("/coupons")
async def list_coupons(
    user: CurrentUser = Depends(admin_only),
    coupons: CouponService = Depends(get_coupon_service),
):
    return await coupons.get_coupons()

@router.post("/coupons", status_code=201)
async def create_coupon(
    data: CouponCreate,
    user: CurrentUser = Depends(admin_only),
    coupons: CouponService = Depends(get_coupon_service),
):
    coupon_id = await coupons.create_coupon(data)
    return {"message": "Coupon created successfully", "couponId": coupon_id}

@router.put("/coupons/{coupon_id}")
async def update_coupon(
    coupon_id: int,
    data: CouponUpdate,
    user: CurrentUser = Depends(admin_only),
    coupons: CouponService = Depends(get_coupon_service),
):
    await coupons.set_active(coupon_id, data.is_active)
    return {"message": "Coupon updated successfully"}
