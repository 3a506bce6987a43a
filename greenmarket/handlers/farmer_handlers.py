# greenmarket/handlers/farmer_handlers.py
from fastapi import APIRouter, Depends
from ..models.user import CurrentUser, UserRole
from ..services.order_service import OrderService
from ..services.product_service import ProductService
from .dependencies import Page, get_order_service, get_product_service, require_role

router = APIRouter(prefix="/api/farmer", tags=["farmer"])

farmer_only = require_role(UserRole.FARMER)

@router.get("/dashboard")
async def dashboard(
    user: CurrentUser = Depends(farmer_only),
    products: ProductService = Depends(get_product_service),
):
    """Sales summary of the signed-in farmer"""
    return await products.get_farmer_dashboard(user.user_id)

@router.get("/products")
async def my_products(
    user: CurrentUser = Depends(farmer_only),
    products: ProductService = Depends(get_product_service),
):
    return await products.get_farmer_products(user.user_id)

@router.get("/orders")
async def my_orders(
    page: Page = Depends(),
    user: CurrentUser = Depends(farmer_only),
    orders: OrderService = Depends(get_order_service),
):
    return await orders.get_farmer_orders(user.user_id, page.limit, page.offset)
