"""
Orders API Endpoints
Handles order management, status updates and export

Totals, order numbers and stock movements are computed server-side by
OrderRepository; clients only send customer, items and adjustments.
"""
import io
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse

from app.core.auth import TokenUser, get_current_user, require_staff, require_manager
from app.core.config import settings
from app.core.errors import NotFound
from app.core.pagination import PaginationParams, paginated
from app.domain.order import (
    OrderCreate,
    OrderUpdate,
    OrderStatusUpdate,
    BulkStatusUpdate,
    OrderStatus,
    PaymentStatus,
)
from app.repositories.order_repository import OrderRepository
from app.services.audit_service import AuditTrail, get_audit_trail
from app.services.export_service import export_rows, export_filename

logger = logging.getLogger(__name__)

router = APIRouter()

EXPORT_COLUMNS = [
    "order_number", "customer_name", "customer_email", "status", "payment_status",
    "item_count", "subtotal", "tax_amount", "shipping_cost", "discount_amount",
    "total_amount", "shipping_city", "shipping_state", "created_at", "delivered_at",
]

EXPORT_LIMIT = 10000


def _get_or_404(repo: OrderRepository, order_id: int, user_id: int):
    order = repo.find_by_id(order_id, user_id)
    if not order:
        raise NotFound("Order")
    return order


@router.get("/")
async def get_orders(
    pagination: PaginationParams = Depends(),
    status_filter: Optional[OrderStatus] = Query(None, alias="status", description="Filter by order status"),
    payment_status: Optional[PaymentStatus] = Query(None, description="Filter by payment status"),
    customer_id: Optional[int] = Query(None, ge=1, description="Orders of one customer"),
    start_date: Optional[date] = Query(None, description="Created on or after (YYYY-MM-DD)"),
    end_date: Optional[date] = Query(None, description="Created on or before (YYYY-MM-DD)"),
    min_amount: Optional[float] = Query(None, ge=0),
    max_amount: Optional[float] = Query(None, ge=0),
    user: TokenUser = Depends(get_current_user)
):
    """
    Get orders with optional filters

    Search matches order number, customer name or customer email.
    """
    try:
        repo = OrderRepository()
        orders, total = repo.find_all(
            user_id=user.id,
            status=status_filter,
            payment_status=payment_status,
            customer_id=customer_id,
            start_date=start_date,
            end_date=end_date,
            min_amount=min_amount,
            max_amount=max_amount,
            search=pagination.search,
            sort_by=pagination.sort_by or "created_at",
            order=pagination.order,
            limit=pagination.limit,
            offset=pagination.offset
        )
        return paginated([o.to_dict() for o in orders], total, pagination)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching orders: {e}")
        raise HTTPException(status_code=500, detail=f"Error fetching orders: {str(e)}")


@router.get("/stats")
async def get_order_stats(user: TokenUser = Depends(get_current_user)):
    """
    Get order statistics

    Returns:
    - Counts per status and per payment status
    - Total and delivered revenue
    - Average order value
    """
    try:
        repo = OrderRepository()
        return {"status": "success", "data": repo.get_stats(user.id)}

    except Exception as e:
        logger.error(f"Error fetching order stats: {e}")
        raise HTTPException(status_code=500, detail=f"Error fetching stats: {str(e)}")


@router.get("/export")
async def export_orders(
    format: str = Query("csv", description="csv or excel"),
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    user: TokenUser = Depends(get_current_user),
    audit: AuditTrail = Depends(get_audit_trail)
):
    repo = OrderRepository()
    orders, _ = repo.find_all(
        user_id=user.id,
        status=status_filter,
        start_date=start_date,
        end_date=end_date,
        limit=EXPORT_LIMIT,
        offset=0
    )

    content, media_type, extension = export_rows(
        [o.to_dict() for o in orders], EXPORT_COLUMNS, format, sheet_title="Orders"
    )
    filename = export_filename("orders", extension)
    audit.exported(user.id, "order", format, len(orders),
                   {"status": status_filter, "start_date": start_date, "end_date": end_date})

    return StreamingResponse(
        io.BytesIO(content),
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@router.get("/{order_id}")
async def get_order(order_id: int, user: TokenUser = Depends(get_current_user)):
    """Get a single order with its line items"""
    repo = OrderRepository()
    order = _get_or_404(repo, order_id, user.id)

    return {"status": "success", "data": order.to_dict()}


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_order(
    data: OrderCreate,
    user: TokenUser = Depends(require_staff),
    audit: AuditTrail = Depends(get_audit_trail)
):
    """
    Create an order.

    Prices default to the current product price, stock is reserved
    immediately and GST is applied at the configured rate.
    """
    repo = OrderRepository()
    order = repo.create(user.id, data, tax_rate=settings.TAX_RATE)
    logger.info(f"Order {order.order_number} created by user {user.id} ({order.total_amount})")
    audit.created(user.id, "order", order.id, order.to_dict())

    return {
        "status": "success",
        "message": "Order created successfully",
        "data": order.to_dict()
    }


@router.put("/{order_id}")
async def update_order(
    order_id: int,
    data: OrderUpdate,
    user: TokenUser = Depends(require_staff),
    audit: AuditTrail = Depends(get_audit_trail)
):
    """Edit notes / shipping address while the order is pending or confirmed"""
    repo = OrderRepository()
    before = _get_or_404(repo, order_id, user.id)
    order = repo.update_details(order_id, user.id, data)
    if not order:
        raise NotFound("Order")

    audit.updated(user.id, "order", order_id, before.to_dict(), order.to_dict(), fields=data.model_fields_set)

    return {
        "status": "success",
        "message": "Order updated successfully",
        "data": order.to_dict()
    }


@router.put("/{order_id}/status")
async def update_order_status(
    order_id: int,
    data: OrderStatusUpdate,
    user: TokenUser = Depends(require_staff),
    audit: AuditTrail = Depends(get_audit_trail)
):
    repo = OrderRepository()
    before = _get_or_404(repo, order_id, user.id)
    order = repo.update_status(
        order_id,
        user.id,
        status=data.status,
        payment_status=data.payment_status,
        notes=data.notes
    )
    if not order:
        raise NotFound("Order")

    logger.info(
        f"Order {order.order_number} status={order.status} payment={order.payment_status} by user {user.id}"
    )
    audit.updated(user.id, "order", order_id, before.to_dict(), order.to_dict(), fields=data.model_fields_set)

    return {
        "status": "success",
        "message": "Order status updated successfully",
        "data": order.to_dict()
    }


@router.post("/bulk-status")
async def bulk_update_order_status(
    data: BulkStatusUpdate,
    user: TokenUser = Depends(require_staff),
    audit: AuditTrail = Depends(get_audit_trail)
):
    repo = OrderRepository()
    result = repo.bulk_update_status(data.order_ids, user.id, data.status)
    for order_id in result["updated"]:
        audit.updated(user.id, "order", order_id, {}, {"status": data.status})

    return {
        "status": "success",
        "message": f"Updated {len(result['updated'])} of {len(data.order_ids)} orders to {data.status}",
        "data": {
            "requested": len(data.order_ids),
            "updated": len(result['updated']),
            "failed": len(result['not_found']),
            "updated_ids": result['updated'],
            "not_found_ids": result['not_found']
        }
    }


@router.delete("/{order_id}")
async def delete_order(
    order_id: int,
    user: TokenUser = Depends(require_manager),
    audit: AuditTrail = Depends(get_audit_trail)
):
    """Delete a pending or cancelled order; reserved stock goes back to the products"""
    repo = OrderRepository()
    order = _get_or_404(repo, order_id, user.id)
    if not repo.delete(order_id, user.id):
        raise NotFound("Order")

    logger.info(f"Order {order_id} deleted by user {user.id}")
    audit.deleted(user.id, "order", order_id, order.to_dict())
    return {"status": "success", "message": "Order deleted successfully"}
