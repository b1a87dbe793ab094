"""
Dashboard API Endpoints
Aggregated numbers and chart series for the admin dashboard
"""
import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query

from app.core.auth import TokenUser, get_current_user
from app.repositories.dashboard_repository import DashboardRepository
from app.repositories.product_repository import ProductRepository

logger = logging.getLogger(__name__)

router = APIRouter()

RevenuePeriod = Literal["7days", "30days", "12months"]


@router.get("/")
async def get_dashboard(user: TokenUser = Depends(get_current_user)):
    """
    Everything the dashboard landing page needs in one call:
    stats, recent orders, low stock, top customers and 30-day revenue.
    """
    try:
        repo = DashboardRepository()
        return {
            "status": "success",
            "data": {
                "stats": repo.get_stats(user.id),
                "recent_orders": repo.get_recent_orders(user.id, limit=5),
                "low_stock_products": ProductRepository().find_low_stock(user.id, limit=5),
                "top_customers": repo.get_top_customers(user.id, limit=5),
                "revenue_chart": repo.get_revenue_chart(user.id, "30days"),
            }
        }

    except Exception as e:
        logger.error(f"Error building dashboard for user {user.id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error fetching dashboard: {str(e)}")


@router.get("/stats")
async def get_dashboard_stats(user: TokenUser = Depends(get_current_user)):
    try:
        repo = DashboardRepository()
        return {"status": "success", "data": repo.get_stats(user.id)}

    except Exception as e:
        logger.error(f"Error fetching dashboard stats: {e}")
        raise HTTPException(status_code=500, detail=f"Error fetching stats: {str(e)}")


@router.get("/recent-orders")
async def get_recent_orders(
    limit: int = Query(10, ge=1, le=50),
    user: TokenUser = Depends(get_current_user)
):
    try:
        repo = DashboardRepository()
        orders = repo.get_recent_orders(user.id, limit=limit)
        return {"status": "success", "count": len(orders), "data": orders}

    except Exception as e:
        logger.error(f"Error fetching recent orders: {e}")
        raise HTTPException(status_code=500, detail=f"Error fetching recent orders: {str(e)}")


@router.get("/low-stock")
async def get_low_stock(
    limit: int = Query(10, ge=1, le=50),
    user: TokenUser = Depends(get_current_user)
):
    try:
        products = ProductRepository().find_low_stock(user.id, limit=limit)
        return {"status": "success", "count": len(products), "data": products}

    except Exception as e:
        logger.error(f"Error fetching low stock products: {e}")
        raise HTTPException(status_code=500, detail=f"Error fetching low stock products: {str(e)}")


@router.get("/top-customers")
async def get_top_customers(
    limit: int = Query(10, ge=1, le=50),
    user: TokenUser = Depends(get_current_user)
):
    """Customers ranked by lifetime revenue"""
    try:
        repo = DashboardRepository()
        customers = repo.get_top_customers(user.id, limit=limit)
        return {"status": "success", "count": len(customers), "data": customers}

    except Exception as e:
        logger.error(f"Error fetching top customers: {e}")
        raise HTTPException(status_code=500, detail=f"Error fetching top customers: {str(e)}")


@router.get("/revenue-chart")
async def get_revenue_chart(
    period: RevenuePeriod = Query("30days", description="7days, 30days or 12months"),
    user: TokenUser = Depends(get_current_user)
):
    """Daily revenue for 7days / 30days, monthly for 12months (cancelled and returned excluded)"""
    try:
        repo = DashboardRepository()
        series = repo.get_revenue_chart(user.id, period)
        return {"status": "success", "period": period, "count": len(series), "data": series}

    except Exception as e:
        logger.error(f"Error fetching revenue chart: {e}")
        raise HTTPException(status_code=500, detail=f"Error fetching revenue chart: {str(e)}")


@router.get("/order-status")
async def get_order_status_distribution(user: TokenUser = Depends(get_current_user)):
    try:
        repo = DashboardRepository()
        return {"status": "success", "data": repo.get_order_status_distribution(user.id)}

    except Exception as e:
        logger.error(f"Error fetching order status distribution: {e}")
        raise HTTPException(status_code=500, detail=f"Error fetching order status distribution: {str(e)}")


@router.get("/product-categories")
async def get_product_categories(user: TokenUser = Depends(get_current_user)):
    try:
        repo = DashboardRepository()
        return {"status": "success", "data": repo.get_product_category_distribution(user.id)}

    except Exception as e:
        logger.error(f"Error fetching product categories: {e}")
        raise HTTPException(status_code=500, detail=f"Error fetching product categories: {str(e)}")


@router.get("/customer-segments")
async def get_customer_segments(user: TokenUser = Depends(get_current_user)):
    try:
        repo = DashboardRepository()
        return {"status": "success", "data": repo.get_customer_segment_distribution(user.id)}

    except Exception as e:
        logger.error(f"Error fetching customer segments: {e}")
        raise HTTPException(status_code=500, detail=f"Error fetching customer segments: {str(e)}")


@router.get("/warehouse-utilization")
async def get_warehouse_utilization(user: TokenUser = Depends(get_current_user)):
    try:
        repo = DashboardRepository()
        return {"status": "success", "data": repo.get_warehouse_utilization(user.id)}

    except Exception as e:
        logger.error(f"Error fetching warehouse utilization: {e}")
        raise HTTPException(status_code=500, detail=f"Error fetching warehouse utilization: {str(e)}")
