"""
Insights API Endpoints

Reorder recommendations, revenue trend analysis and customer
segmentation, computed on request from the user's own data.
"""
import logging
from typing import Optional, Literal

from fastapi import APIRouter, Depends, HTTPException, Query

from app.core.auth import TokenUser, get_current_user
from app.services.insights_service import InsightsService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/products/{product_id}/reorder")
async def get_reorder_recommendation(product_id: int, user: TokenUser = Depends(get_current_user)):
    """
    Reorder point, safety stock and economic order quantity for a product,
    based on the last 90 days of order demand.
    """
    service = InsightsService()
    return {"status": "success", "data": service.product_reorder(product_id, user.id)}


@router.get("/revenue-trend")
async def get_revenue_trend(
    days: int = Query(60, ge=7, le=365, description="Days of history to analyse"),
    user: TokenUser = Depends(get_current_user)
):
    """Daily revenue with moving average, smoothing, trend, anomalies and a 7-day forecast"""
    try:
        service = InsightsService()
        return {"status": "success", "data": service.revenue_trend(user.id, days=days)}

    except Exception as e:
        logger.error(f"Error computing revenue trend: {e}")
        raise HTTPException(status_code=500, detail=f"Error computing revenue trend: {str(e)}")


@router.get("/customers/rfm")
async def get_customer_rfm(user: TokenUser = Depends(get_current_user)):
    try:
        service = InsightsService()
        return {"status": "success", "data": service.customer_rfm(user.id)}

    except Exception as e:
        logger.error(f"Error computing RFM scores: {e}")
        raise HTTPException(status_code=500, detail=f"Error computing RFM scores: {str(e)}")


@router.get("/customers/churn-risk")
async def get_churn_risk(
    risk_level: Optional[Literal["low", "medium", "high"]] = Query(None, description="Only this risk level"),
    user: TokenUser = Depends(get_current_user)
):
    try:
        service = InsightsService()
        return {"status": "success", "data": service.customer_churn(user.id, risk_level=risk_level)}

    except Exception as e:
        logger.error(f"Error computing churn risk: {e}")
        raise HTTPException(status_code=500, detail=f"Error computing churn risk: {str(e)}")
