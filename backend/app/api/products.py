"""
Products API Endpoints
Handles product catalog management, stock adjustments and low-stock alerts
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.auth import TokenUser, get_current_user, require_staff, require_manager
from app.core.errors import NotFound, ValidationFailed
from app.core.pagination import PaginationParams, paginated
from app.domain.common import BulkIds
from app.domain.product import ProductCreate, ProductUpdate, StockUpdate, ProductStatus
from app.repositories.product_repository import ProductRepository
from app.services.audit_service import AuditTrail, get_audit_trail

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_or_404(repo: ProductRepository, product_id: int, user_id: int):
    product = repo.find_by_id(product_id, user_id)
    if not product:
        raise NotFound("Product")
    return product


def _sku_taken():
    return ValidationFailed(
        "Product with this SKU already exists",
        errors=[{"field": "sku", "message": "Product with this SKU already exists"}]
    )


@router.get("/")
async def get_products(
    pagination: PaginationParams = Depends(),
    category: Optional[str] = Query(None, description="Filter by category"),
    status_filter: Optional[ProductStatus] = Query(None, alias="status", description="Filter by status"),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    in_stock: Optional[bool] = Query(None, description="Only products with (true) or without (false) stock"),
    low_stock: Optional[bool] = Query(None, description="Only products at or below their reorder level"),
    user: TokenUser = Depends(get_current_user)
):
    """
    Get all products with optional filters

    Search matches name, SKU or description.
    """
    try:
        repo = ProductRepository()
        products, total = repo.find_all(
            user_id=user.id,
            category=category,
            status=status_filter,
            min_price=min_price,
            max_price=max_price,
            in_stock=in_stock,
            low_stock=low_stock,
            search=pagination.search,
            sort_by=pagination.sort_by or "created_at",
            order=pagination.order,
            limit=pagination.limit,
            offset=pagination.offset
        )
        return paginated([p.to_dict() for p in products], total, pagination)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching products: {e}")
        raise HTTPException(status_code=500, detail=f"Error fetching products: {str(e)}")


@router.get("/categories")
async def get_categories(user: TokenUser = Depends(get_current_user)):
    """Categories with product count, units in stock and inventory value"""
    try:
        repo = ProductRepository()
        categories = repo.get_categories(user.id)
        return {"status": "success", "count": len(categories), "data": categories}

    except Exception as e:
        logger.error(f"Error fetching categories: {e}")
        raise HTTPException(status_code=500, detail=f"Error fetching categories: {str(e)}")


@router.get("/alerts/low-stock")
async def get_low_stock_alerts(
    limit: int = Query(50, ge=1, le=200),
    user: TokenUser = Depends(get_current_user)
):
    try:
        repo = ProductRepository()
        products = repo.find_low_stock(user.id, limit=limit)
        return {"status": "success", "count": len(products), "data": products}

    except Exception as e:
        logger.error(f"Error fetching low stock alerts: {e}")
        raise HTTPException(status_code=500, detail=f"Error fetching low stock alerts: {str(e)}")


@router.get("/{product_id}")
async def get_product(product_id: int, user: TokenUser = Depends(get_current_user)):
    repo = ProductRepository()
    product = _get_or_404(repo, product_id, user.id)

    return {"status": "success", "data": product.to_dict()}


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_product(
    data: ProductCreate,
    user: TokenUser = Depends(require_staff),
    audit: AuditTrail = Depends(get_audit_trail)
):
    """Create a product; SKUs are unique per owner"""
    repo = ProductRepository()

    if repo.sku_exists(data.sku, user.id):
        raise _sku_taken()

    product = repo.create(user.id, data)
    logger.info(f"Product {product.sku} created by user {user.id}")
    audit.created(user.id, "product", product.id, product.to_dict())

    return {
        "status": "success",
        "message": "Product created successfully",
        "data": product.to_dict()
    }


@router.put("/{product_id}")
async def update_product(
    product_id: int,
    data: ProductUpdate,
    user: TokenUser = Depends(require_staff),
    audit: AuditTrail = Depends(get_audit_trail)
):
    """Update product details (stock changes go through PATCH /{id}/stock)"""
    repo = ProductRepository()

    if data.sku and repo.sku_exists(data.sku, user.id, exclude_id=product_id):
        raise _sku_taken()

    before = _get_or_404(repo, product_id, user.id)
    product = repo.update(product_id, user.id, data)
    if not product:
        raise NotFound("Product")

    audit.updated(user.id, "product", product_id, before.to_dict(), product.to_dict(),
                  fields=data.model_fields_set)

    return {
        "status": "success",
        "message": "Product updated successfully",
        "data": product.to_dict()
    }


@router.patch("/{product_id}/stock")
async def update_product_stock(
    product_id: int,
    data: StockUpdate,
    user: TokenUser = Depends(require_staff),
    audit: AuditTrail = Depends(get_audit_trail)
):
    """
    Adjust stock: add, subtract or set.

    Every adjustment is recorded as a stock movement; stock never goes negative.
    """
    repo = ProductRepository()
    result = repo.adjust_stock(product_id, user.id, data)
    if result is None:
        raise NotFound("Product")

    product = result["product"]
    logger.info(f"Stock of {product.sku} {data.type} {data.quantity} -> {product.stock} by user {user.id}")
    audit.updated(user.id, "product", product_id,
                  {"stock": result["movement"].get("stock_before")}, {"stock": product.stock})

    return {
        "status": "success",
        "message": "Stock updated successfully",
        "data": {
            "product": product.to_dict(),
            "movement": result["movement"]
        }
    }


@router.get("/{product_id}/movements")
async def get_stock_movements(
    product_id: int,
    limit: int = Query(50, ge=1, le=500),
    user: TokenUser = Depends(get_current_user)
):
    """Stock movement history, newest first"""
    repo = ProductRepository()
    _get_or_404(repo, product_id, user.id)

    movements = repo.find_movements(product_id, user.id, limit=limit)
    return {"status": "success", "count": len(movements), "data": movements}


@router.delete("/{product_id}")
async def delete_product(
    product_id: int,
    user: TokenUser = Depends(require_manager),
    audit: AuditTrail = Depends(get_audit_trail)
):
    repo = ProductRepository()
    product = _get_or_404(repo, product_id, user.id)
    if not repo.delete(product_id, user.id):
        raise NotFound("Product")

    logger.info(f"Product {product_id} deleted by user {user.id}")
    audit.deleted(user.id, "product", product_id, product.to_dict())
    return {"status": "success", "message": "Product deleted successfully"}


@router.post("/bulk-delete")
async def bulk_delete_products(
    data: BulkIds,
    user: TokenUser = Depends(require_manager),
    audit: AuditTrail = Depends(get_audit_trail)
):
    """Delete several products; each id succeeds or fails on its own"""
    repo = ProductRepository()
    deleted, errors = 0, []

    for product_id in data.ids:
        try:
            if repo.delete(product_id, user.id):
                deleted += 1
                audit.deleted(user.id, "product", product_id)
            else:
                errors.append({"id": product_id, "error": "Product not found"})
        except Exception as e:
            logger.error(f"Bulk delete failed for product {product_id}: {e}")
            errors.append({"id": product_id, "error": str(e)})

    return {
        "status": "success",
        "message": f"Deleted {deleted} of {len(data.ids)} products",
        "data": {
            "requested": len(data.ids),
            "deleted": deleted,
            "failed": len(errors),
            "errors": errors
        }
    }
