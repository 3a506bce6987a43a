# greenmarket/handlers/order_handlers.py
from datetime import date
from typing import Optional
from fastapi import APIRouter, Body, Depends, Query
from ..models.order import CancelOrderRequest, CreateOrderRequest, OrderStatus, StatusUpdateRequest
from ..models.user import CurrentUser, UserRole
from ..services.order_service import OrderService
from .dependencies import (
    Page,
    ensure_self_or_admin,
    get_current_user,
    get_order_service,
    require_role,
)

router = APIRouter(prefix="/api/orders", tags=["orders"])

@router.post("", status_code=201)
async def create_order(
    request: CreateOrderRequest,
    user: CurrentUser = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
):
    """Place an order from the buyer's cart"""
    return await orders.create_order(user.user_id, request)

@router.get("")
async def list_orders(
    status: Optional[OrderStatus] = None,
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    page: Page = Depends(),
    user: CurrentUser = Depends(require_role(UserRole.ADMIN)),
    orders: OrderService = Depends(get_order_service),
):
    """All orders (admin)"""
    return await orders.search_orders(
        status=status, start_date=start_date, end_date=end_date,
        limit=page.limit, offset=page.offset
    )

@router.get("/user/{user_id}")
async def list_user_orders(
    user_id: int,
    page: Page = Depends(),
    user: CurrentUser = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
):
    ensure_self_or_admin(user, user_id)
    return await orders.get_user_orders(user_id, page.limit, page.offset)

@router.get("/farmer/{farmer_id}")
async def list_farmer_orders(
    farmer_id: int,
    page: Page = Depends(),
    user: CurrentUser = Depends(require_role(UserRole.FARMER, UserRole.ADMIN)),
    orders: OrderService = Depends(get_order_service),
):
    ensure_self_or_admin(user, farmer_id)
    return await orders.get_farmer_orders(farmer_id, page.limit, page.offset)

@router.get("/{order_id}")
async def get_order(
    order_id: int,
    user: CurrentUser = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
):
    """Order with items and tracking history"""
    return await orders.get_order_for(user, order_id)

@router.put("/{order_id}/status")
async def update_order_status(
    order_id: int,
    update: StatusUpdateRequest,
    user: CurrentUser = Depends(require_role(UserRole.FARMER, UserRole.ADMIN)),
    orders: OrderService = Depends(get_order_service),
):
    return await orders.update_order_status(user, order_id, update)

@router.put("/{order_id}/cancel")
async def cancel_order(
    order_id: int,
    body: Optional[CancelOrderRequest] = Body(default=None),
    user: CurrentUser = Depends(require_role(UserRole.BUYER)),
    orders: OrderService = Depends(get_order_service),
):
    return await orders.cancel_order(user, order_id, body.reason if body else None)
