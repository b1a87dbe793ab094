"""
Insights Service

Statistical helpers behind the /insights endpoints: smoothing and trend of
daily revenue, z-score anomaly detection, reorder point / safety stock / EOQ
for products, and RFM scoring plus churn risk for customers.

Everything here is plain descriptive statistics over numpy / pandas; there is
no trained model involved.
"""

import logging
import math
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Sequence

import numpy as np
import pandas as pd

from app.core.errors import NotFound
from app.repositories.product_repository import ProductRepository
from app.repositories.order_repository import OrderRepository
from app.repositories.customer_repository import CustomerRepository

logger = logging.getLogger(__name__)


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class ReorderRecommendation:
    """Reorder parameters derived from a daily demand history"""
    average_daily_demand: float
    demand_std: float
    annual_demand: float
    lead_time_days: int
    safety_stock: int
    reorder_point: int
    economic_order_quantity: int


@dataclass
class RFMScore:
    """Recency / frequency / monetary scores (1-5) for one customer"""
    customer_id: int
    name: Optional[str]
    email: Optional[str]
    recency_days: Optional[int]
    frequency: int
    monetary: float
    recency_score: int
    frequency_score: int
    monetary_score: int
    rfm_score: str
    segment: str


@dataclass
class InsightsConfig:
    """Configuration for insights service"""
    demand_lookback_days: int = 90
    revenue_lookback_days: int = 60
    moving_average_window: int = 7
    smoothing_alpha: float = 0.3
    anomaly_threshold: float = 2.5
    forecast_days: int = 7
    lead_time_days: int = 7
    ordering_cost: float = 50.0
    service_level_z: float = 1.65  # 95% service level


# Holding cost as a fraction of unit cost per year
HOLDING_COST_RATE = 0.25

# Slopes smaller than this are reported as flat
TREND_TOLERANCE = 1e-6


# =============================================================================
# Series helpers
# =============================================================================

def moving_average(values: Sequence[float], window: int = 7) -> List[float]:
    """Trailing moving average; the first points average whatever is available"""
    if not len(values):
        return []
    series = pd.Series(values, dtype=float)
    return [round(float(v), 2) for v in series.rolling(window=max(1, window), min_periods=1).mean()]


def exponential_smoothing(values: Sequence[float], alpha: float = 0.3) -> List[float]:
    """Simple exponential smoothing seeded with the first observation"""
    if not len(values):
        return []

    smoothed = [float(values[0])]
    for value in values[1:]:
        smoothed.append(alpha * float(value) + (1 - alpha) * smoothed[-1])
    return smoothed


def linear_trend(values: Sequence[float]) -> Dict[str, Any]:
    """Least-squares line through the series (x = 0, 1, 2, ...)"""
    if len(values) < 2:
        intercept = float(values[0]) if len(values) else 0.0
        return {"slope": 0.0, "intercept": intercept, "direction": "flat"}

    x = np.arange(len(values), dtype=float)
    slope, intercept = np.polyfit(x, np.asarray(values, dtype=float), 1)

    if slope > TREND_TOLERANCE:
        direction = "up"
    elif slope < -TREND_TOLERANCE:
        direction = "down"
    else:
        direction = "flat"

    return {"slope": float(slope), "intercept": float(intercept), "direction": direction}


def detect_anomalies(values: Sequence[float], threshold: float = 2.5) -> List[Dict[str, Any]]:
    """Points whose population z-score exceeds the threshold in absolute value"""
    if not len(values):
        return []

    data = np.asarray(values, dtype=float)
    std = data.std()
    if std == 0:
        return []

    z_scores = (data - data.mean()) / std
    return [
        {"index": int(i), "value": float(data[i]), "z_score": round(float(z), 2)}
        for i, z in enumerate(z_scores)
        if abs(z) > threshold
    ]


def forecast(values: Sequence[float], periods: int = 7, alpha: float = 0.3) -> List[float]:
    """Last smoothed level extended by the linear slope, never below zero"""
    if not len(values):
        return [0.0] * periods

    level = exponential_smoothing(values, alpha)[-1]
    slope = linear_trend(values)["slope"]
    return [round(max(0.0, level + slope * step), 2) for step in range(1, periods + 1)]


# =============================================================================
# Inventory
# =============================================================================

def reorder_recommendation(
    daily_demand: Sequence[float],
    lead_time_days: int = 7,
    unit_cost: float = 0.0,
    ordering_cost: float = 50.0,
    service_level_z: float = 1.65
) -> ReorderRecommendation:
    """
    Classical reorder point with safety stock, plus economic order quantity.

        safety_stock  = ceil(z * sqrt(lead_time) * std)
        reorder_point = ceil(mean * lead_time + safety_stock)
        eoq           = ceil(sqrt(2 * annual_demand * ordering_cost / holding_cost))

    EOQ is 0 when there is no demand or no unit cost to hold.
    """
    data = np.asarray(daily_demand, dtype=float) if len(daily_demand) else np.zeros(1)
    mean = float(data.mean())
    std = float(data.std())
    annual_demand = mean * 365

    safety_stock = int(math.ceil(service_level_z * math.sqrt(lead_time_days) * std))
    reorder_point = int(math.ceil(mean * lead_time_days + safety_stock))

    if annual_demand > 0 and unit_cost > 0:
        holding_cost = HOLDING_COST_RATE * unit_cost
        eoq = int(math.ceil(math.sqrt(2 * annual_demand * ordering_cost / holding_cost)))
    else:
        eoq = 0

    return ReorderRecommendation(
        average_daily_demand=round(mean, 2),
        demand_std=round(std, 2),
        annual_demand=round(annual_demand, 2),
        lead_time_days=lead_time_days,
        safety_stock=safety_stock,
        reorder_point=reorder_point,
        economic_order_quantity=eoq
    )


# =============================================================================
# Customers
# =============================================================================

def _days_since(moment: Optional[datetime], now: datetime) -> Optional[int]:
    if moment is None:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return max(0, (now - moment).days)


def _quintile_scores(values: pd.Series, ascending: bool = True) -> pd.Series:
    """Map values onto 1-5 by percentile rank (higher is better when ascending)"""
    pct = values.rank(method="average", pct=True, ascending=ascending)
    return np.ceil(pct * 5).clip(1, 5).astype(int)


def _rfm_segment(r: int, f: int, m: int) -> str:
    if r >= 4 and f >= 4 and m >= 4:
        return "champions"
    if r >= 3 and f >= 3:
        return "loyal"
    if r >= 4:
        return "recent"
    if r <= 2 and f >= 3:
        return "at_risk"
    if r <= 2:
        return "lost"
    return "needs_attention"


def rfm_scores(customers: List[Dict[str, Any]], now: Optional[datetime] = None) -> List[RFMScore]:
    """
    Score customers on recency, frequency and monetary value.

    Expects dicts with id, name, email, total_orders, total_revenue and
    last_order_at. Customers without orders score 1/1/1 and are labelled
    "inactive"; the rest are ranked against each other.
    """
    if not customers:
        return []

    now = now or datetime.now(timezone.utc)
    df = pd.DataFrame([{
        "customer_id": c["id"],
        "name": c.get("name"),
        "email": c.get("email"),
        "recency_days": _days_since(c.get("last_order_at"), now),
        "frequency": int(c.get("total_orders") or 0),
        "monetary": float(c.get("total_revenue") or 0),
    } for c in customers])

    buyers = df["frequency"] > 0
    df["recency_score"] = 1
    df["frequency_score"] = 1
    df["monetary_score"] = 1

    if buyers.any():
        active = df[buyers]
        # Missing last order date (orders all cancelled) ranks as least recent
        recency = pd.to_numeric(active["recency_days"], errors="coerce")
        recency = recency.fillna(recency.max() if recency.notna().any() else 0)
        df.loc[buyers, "recency_score"] = _quintile_scores(recency, ascending=False)
        df.loc[buyers, "frequency_score"] = _quintile_scores(active["frequency"].astype(float))
        df.loc[buyers, "monetary_score"] = _quintile_scores(active["monetary"])

    results = []
    for row in df.itertuples(index=False):
        r, f, m = int(row.recency_score), int(row.frequency_score), int(row.monetary_score)
        has_orders = row.frequency > 0
        results.append(RFMScore(
            customer_id=int(row.customer_id),
            name=row.name,
            email=row.email,
            recency_days=None if row.recency_days is None or pd.isna(row.recency_days) else int(row.recency_days),
            frequency=int(row.frequency),
            monetary=round(float(row.monetary), 2),
            recency_score=r,
            frequency_score=f,
            monetary_score=m,
            rfm_score=f"{r}{f}{m}",
            segment=_rfm_segment(r, f, m) if has_orders else "inactive"
        ))
    return results


def churn_risk(customer: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Rule-based churn risk from recency and frequency.

    high:   no order for more than 90 days, or never ordered and signed up
            more than 30 days ago
    medium: no order for more than 45 days, or a single order older than 30 days
    low:    everything else
    """
    now = now or datetime.now(timezone.utc)
    total_orders = int(customer.get("total_orders") or 0)
    days_since_order = _days_since(customer.get("last_order_at"), now)
    reasons = []

    if days_since_order is None:
        account_age = _days_since(customer.get("created_at"), now) or 0
        if account_age > 30:
            level = "high"
            reasons.append(f"No orders in {account_age} days since signup")
        else:
            level = "medium"
            reasons.append("New customer without orders")
    elif days_since_order > 90:
        level = "high"
        reasons.append(f"No orders in the last {days_since_order} days")
    elif days_since_order > 45:
        level = "medium"
        reasons.append(f"No orders in the last {days_since_order} days")
    elif total_orders <= 1 and days_since_order > 30:
        level = "medium"
        reasons.append("Single order, not repeated within 30 days")
    else:
        level = "low"

    return {
        "customer_id": customer["id"],
        "name": customer.get("name"),
        "email": customer.get("email"),
        "segment": customer.get("segment"),
        "total_orders": total_orders,
        "total_revenue": round(float(customer.get("total_revenue") or 0), 2),
        "days_since_last_order": days_since_order,
        "risk_level": level,
        "reasons": reasons,
    }


# =============================================================================
# Insights Service
# =============================================================================

class InsightsService:
    """
    Glue between the repositories and the statistical helpers above.

    Provides:
    - Per-product reorder recommendations
    - Revenue trend with smoothing, anomalies and a short forecast
    - Customer RFM segmentation and churn risk
    """

    def __init__(self, config: Optional[InsightsConfig] = None):
        self.config = config or InsightsConfig()
        self.products = ProductRepository()
        self.orders = OrderRepository()
        self.customers = CustomerRepository()

    def product_reorder(self, product_id: int, user_id: int) -> Dict[str, Any]:
        product = self.products.find_by_id(product_id, user_id)
        if not product:
            raise NotFound("Product")

        history = self.products.get_daily_demand(product_id, user_id, days=self.config.demand_lookback_days)
        demand = [day["units"] for day in history]
        unit_cost = float(product.cost if product.cost is not None else product.price)

        recommendation = reorder_recommendation(
            demand,
            lead_time_days=self.config.lead_time_days,
            unit_cost=unit_cost,
            ordering_cost=self.config.ordering_cost,
            service_level_z=self.config.service_level_z
        )

        needs_reorder = product.stock <= recommendation.reorder_point
        suggested_quantity = 0
        if needs_reorder:
            suggested_quantity = max(
                recommendation.economic_order_quantity,
                recommendation.reorder_point - product.stock
            )

        daily = recommendation.average_daily_demand
        days_of_coverage = round(product.stock / daily, 1) if daily > 0 else None

        logger.info(
            f"Reorder check for product {product_id}: stock={product.stock} "
            f"reorder_point={recommendation.reorder_point}"
        )

        return {
            "product_id": product.id,
            "sku": product.sku,
            "name": product.name,
            "current_stock": product.stock,
            "days_analyzed": len(demand),
            "days_of_coverage": days_of_coverage,
            "needs_reorder": needs_reorder,
            "suggested_order_quantity": suggested_quantity,
            **asdict(recommendation),
        }

    def revenue_trend(self, user_id: int, days: Optional[int] = None) -> Dict[str, Any]:
        days = days or self.config.revenue_lookback_days
        history = self.orders.find_daily_revenue(user_id, days=days)
        revenue = [day["revenue"] for day in history]

        smoothed = exponential_smoothing(revenue, self.config.smoothing_alpha)
        averages = moving_average(revenue, self.config.moving_average_window)
        anomalies = detect_anomalies(revenue, self.config.anomaly_threshold)
        for anomaly in anomalies:
            anomaly["date"] = history[anomaly["index"]]["day"]

        series = [
            {
                "date": day["day"],
                "revenue": round(day["revenue"], 2),
                "order_count": day["order_count"],
                "moving_average": averages[i],
                "smoothed": round(smoothed[i], 2),
            }
            for i, day in enumerate(history)
        ]

        return {
            "days": days,
            "total_revenue": round(float(sum(revenue)), 2),
            "series": series,
            "trend": linear_trend(revenue),
            "anomalies": anomalies,
            "forecast": forecast(revenue, self.config.forecast_days, self.config.smoothing_alpha),
        }

    def customer_rfm(self, user_id: int) -> Dict[str, Any]:
        scores = [asdict(score) for score in rfm_scores(self.customers.find_order_summaries(user_id))]

        segments: Dict[str, int] = {}
        for score in scores:
            segments[score["segment"]] = segments.get(score["segment"], 0) + 1

        return {"customers": scores, "segments": segments}

    def customer_churn(self, user_id: int, risk_level: Optional[str] = None) -> Dict[str, Any]:
        risks = [churn_risk(customer) for customer in self.customers.find_order_summaries(user_id)]

        summary = {"high": 0, "medium": 0, "low": 0}
        for risk in risks:
            summary[risk["risk_level"]] += 1

        if risk_level:
            risks = [risk for risk in risks if risk["risk_level"] == risk_level]

        order = {"high": 0, "medium": 1, "low": 2}
        risks.sort(key=lambda r: (order[r["risk_level"]], -(r["days_since_last_order"] or 0)))

        return {"customers": risks, "summary": summary}
