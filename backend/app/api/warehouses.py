"""
Warehouses API Endpoints

CRUD for storage facilities plus capacity, status and amenity updates,
proximity search by pincode and CSV / Excel export.
"""
import io
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse

from app.core.auth import TokenUser, get_current_user, require_staff, require_manager
from app.core.errors import NotFound, ValidationFailed
from app.core.pagination import PaginationParams, paginated
from app.domain.common import BulkIds
from app.domain.warehouse import (
    WarehouseCreate,
    WarehouseUpdate,
    CapacityUpdate,
    WarehouseStatusUpdate,
    AmenitiesUpdate,
    WarehouseStatus,
    validate_pincode,
)
from app.repositories.warehouse_repository import WarehouseRepository
from app.services.audit_service import AuditTrail, get_audit_trail
from app.services.export_service import export_rows, export_filename
from app.utils.distance import (
    calculate_distance,
    pincode_to_coordinates,
    estimate_delivery_days,
    estimate_delivery_hours,
    format_distance,
)

logger = logging.getLogger(__name__)

router = APIRouter()

EXPORT_COLUMNS = [
    "code", "name", "city", "state", "pincode", "status", "is_verified",
    "capacity", "occupied", "utilization_percentage", "available_space",
    "contact_person", "contact_phone", "amenities", "created_at",
]

# Upper bound for a single export
EXPORT_LIMIT = 10000


def _get_or_404(repo: WarehouseRepository, warehouse_id: int, user_id: int):
    warehouse = repo.find_by_id(warehouse_id, user_id)
    if not warehouse:
        raise NotFound("Warehouse")
    return warehouse


@router.get("/")
async def list_warehouses(
    pagination: PaginationParams = Depends(),
    status_filter: Optional[WarehouseStatus] = Query(None, alias="status", description="Filter by status"),
    is_verified: Optional[bool] = Query(None, description="Filter by verification flag"),
    city: Optional[str] = Query(None, max_length=100, description="Filter by city"),
    user: TokenUser = Depends(get_current_user)
):
    """List warehouses with pagination, filters and sorting"""
    try:
        repo = WarehouseRepository()
        warehouses, total = repo.find_all(
            user_id=user.id,
            status=status_filter,
            is_verified=is_verified,
            city=city,
            search=pagination.search,
            sort_by=pagination.sort_by or "created_at",
            order=pagination.order,
            limit=pagination.limit,
            offset=pagination.offset
        )
        return paginated([w.to_dict() for w in warehouses], total, pagination)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching warehouses: {e}")
        raise HTTPException(status_code=500, detail=f"Error fetching warehouses: {str(e)}")


@router.get("/stats")
async def get_warehouse_stats(user: TokenUser = Depends(get_current_user)):
    """Counts by status, total capacity and overall utilization"""
    try:
        repo = WarehouseRepository()
        return {"status": "success", "data": repo.get_stats(user.id)}

    except Exception as e:
        logger.error(f"Error fetching warehouse stats: {e}")
        raise HTTPException(status_code=500, detail=f"Error fetching stats: {str(e)}")


@router.get("/nearby")
async def find_nearby_warehouses(
    pincode: str = Query(..., description="Delivery pincode"),
    radius: int = Query(100, ge=1, le=1000, description="Search radius in km"),
    user: TokenUser = Depends(get_current_user)
):
    """
    Active warehouses within `radius` km of a pincode, nearest first.

    Distances are approximate: pincodes resolve to regional centroids and
    warehouses without coordinates fall back to their own pincode.
    """
    try:
        pincode = validate_pincode(pincode)
    except ValueError as e:
        raise ValidationFailed(str(e), errors=[{"field": "pincode", "message": str(e)}])

    origin = pincode_to_coordinates(pincode)
    if origin is None:
        raise ValidationFailed("Could not resolve pincode location",
                               errors=[{"field": "pincode", "message": "Unknown pincode region"}])

    repo = WarehouseRepository()
    results = []
    for warehouse in repo.find_active(user.id):
        location = warehouse.coordinates or pincode_to_coordinates(warehouse.pincode)
        if location is None:
            continue

        distance = calculate_distance(origin[0], origin[1], location[0], location[1])
        if distance > radius:
            continue

        item = warehouse.to_dict()
        item["distance_km"] = distance
        item["distance_display"] = format_distance(distance)
        item["estimated_delivery_days"] = estimate_delivery_days(distance)
        item["estimated_delivery_hours"] = estimate_delivery_hours(distance)
        results.append(item)

    results.sort(key=lambda w: w["distance_km"])

    return {
        "status": "success",
        "data": results,
        "count": len(results),
        "search": {"pincode": pincode, "radius_km": radius},
    }


@router.get("/export")
async def export_warehouses(
    format: str = Query("csv", description="csv or excel"),
    status_filter: Optional[WarehouseStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=255),
    user: TokenUser = Depends(get_current_user),
    audit: AuditTrail = Depends(get_audit_trail)
):
    """Download the (filtered) warehouse list as CSV or Excel"""
    repo = WarehouseRepository()
    warehouses, _ = repo.find_all(
        user_id=user.id,
        status=status_filter,
        search=search,
        sort_by="name",
        order="ASC",
        limit=EXPORT_LIMIT,
        offset=0
    )

    content, media_type, extension = export_rows(
        [w.to_dict() for w in warehouses], EXPORT_COLUMNS, format, sheet_title="Warehouses"
    )
    filename = export_filename("warehouses", extension)
    audit.exported(user.id, "warehouse", format, len(warehouses), {"status": status_filter, "search": search})

    return StreamingResponse(
        io.BytesIO(content),
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@router.get("/{warehouse_id}")
async def get_warehouse(warehouse_id: int, user: TokenUser = Depends(get_current_user)):
    """Get a single warehouse with its amenities"""
    repo = WarehouseRepository()
    warehouse = _get_or_404(repo, warehouse_id, user.id)
    return {"status": "success", "data": warehouse.to_dict()}


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_warehouse(
    data: WarehouseCreate,
    user: TokenUser = Depends(require_staff),
    audit: AuditTrail = Depends(get_audit_trail)
):
    """Create a warehouse; codes are unique per owner"""
    repo = WarehouseRepository()

    if repo.code_exists(data.code, user.id):
        raise ValidationFailed(
            "Warehouse with this code already exists",
            errors=[{"field": "code", "message": "Warehouse with this code already exists"}]
        )

    warehouse = repo.create(user.id, data)
    logger.info(f"Warehouse {warehouse.code} created by user {user.id}")
    audit.created(user.id, "warehouse", warehouse.id, warehouse.to_dict())

    return {
        "status": "success",
        "message": "Warehouse created successfully",
        "data": warehouse.to_dict()
    }


@router.put("/{warehouse_id}")
async def update_warehouse(
    warehouse_id: int,
    data: WarehouseUpdate,
    user: TokenUser = Depends(require_staff),
    audit: AuditTrail = Depends(get_audit_trail)
):
    repo = WarehouseRepository()

    if data.code and repo.code_exists(data.code, user.id, exclude_id=warehouse_id):
        raise ValidationFailed(
            "Warehouse with this code already exists",
            errors=[{"field": "code", "message": "Warehouse with this code already exists"}]
        )

    before = _get_or_404(repo, warehouse_id, user.id)
    warehouse = repo.update(warehouse_id, user.id, data)
    if not warehouse:
        raise NotFound("Warehouse")

    audit.updated(user.id, "warehouse", warehouse_id, before.to_dict(), warehouse.to_dict(),
                  fields=data.model_fields_set)

    return {
        "status": "success",
        "message": "Warehouse updated successfully",
        "data": warehouse.to_dict()
    }


@router.patch("/{warehouse_id}/capacity")
async def update_warehouse_capacity(
    warehouse_id: int,
    data: CapacityUpdate,
    user: TokenUser = Depends(require_staff),
    audit: AuditTrail = Depends(get_audit_trail)
):
    """Update capacity and/or occupied space (occupied never exceeds capacity)"""
    repo = WarehouseRepository()
    before = _get_or_404(repo, warehouse_id, user.id)
    warehouse = repo.update_capacity(warehouse_id, user.id, data.capacity, data.occupied)
    if not warehouse:
        raise NotFound("Warehouse")

    audit.updated(user.id, "warehouse", warehouse_id, before.to_dict(), warehouse.to_dict(),
                  fields=("capacity", "occupied"))

    if data.notes:
        logger.info(f"Capacity of warehouse {warehouse_id} updated: {data.notes}")

    return {
        "status": "success",
        "message": "Warehouse capacity updated successfully",
        "data": warehouse.to_dict()
    }


@router.patch("/{warehouse_id}/status")
async def update_warehouse_status(
    warehouse_id: int,
    data: WarehouseStatusUpdate,
    user: TokenUser = Depends(require_staff),
    audit: AuditTrail = Depends(get_audit_trail)
):
    repo = WarehouseRepository()
    before = _get_or_404(repo, warehouse_id, user.id)
    warehouse = repo.update_status(warehouse_id, user.id, data.status)
    if not warehouse:
        raise NotFound("Warehouse")

    logger.info(f"Warehouse {warehouse_id} status set to {data.status} by user {user.id}")
    audit.updated(user.id, "warehouse", warehouse_id, before.to_dict(), warehouse.to_dict(), fields=("status",))

    return {
        "status": "success",
        "message": f"Warehouse status updated to {data.status}",
        "data": warehouse.to_dict()
    }


@router.put("/{warehouse_id}/amenities")
async def replace_warehouse_amenities(
    warehouse_id: int,
    data: AmenitiesUpdate,
    user: TokenUser = Depends(require_staff),
    audit: AuditTrail = Depends(get_audit_trail)
):
    """Replace the amenity set (duplicates are dropped)"""
    repo = WarehouseRepository()
    before = _get_or_404(repo, warehouse_id, user.id)
    amenities = repo.replace_amenities(warehouse_id, user.id, data.amenities)
    if amenities is None:
        raise NotFound("Warehouse")

    audit.updated(user.id, "warehouse", warehouse_id,
                  {"amenities": before.amenities}, {"amenities": amenities})

    return {
        "status": "success",
        "message": "Warehouse amenities updated successfully",
        "data": {"warehouse_id": warehouse_id, "amenities": amenities, "amenities_count": len(amenities)}
    }


@router.delete("/{warehouse_id}")
async def delete_warehouse(
    warehouse_id: int,
    user: TokenUser = Depends(require_manager),
    audit: AuditTrail = Depends(get_audit_trail)
):
    repo = WarehouseRepository()
    warehouse = _get_or_404(repo, warehouse_id, user.id)
    if not repo.delete(warehouse_id, user.id):
        raise NotFound("Warehouse")

    logger.info(f"Warehouse {warehouse_id} deleted by user {user.id}")
    audit.deleted(user.id, "warehouse", warehouse_id, warehouse.to_dict())
    return {"status": "success", "message": "Warehouse deleted successfully"}


@router.post("/bulk-delete")
async def bulk_delete_warehouses(
    data: BulkIds,
    user: TokenUser = Depends(require_manager),
    audit: AuditTrail = Depends(get_audit_trail)
):
    """Delete several warehouses; each id succeeds or fails on its own"""
    repo = WarehouseRepository()
    deleted, errors = 0, []

    for warehouse_id in data.ids:
        try:
            if repo.delete(warehouse_id, user.id):
                deleted += 1
                audit.deleted(user.id, "warehouse", warehouse_id)
            else:
                errors.append({"id": warehouse_id, "error": "Warehouse not found"})
        except Exception as e:
            logger.error(f"Bulk delete failed for warehouse {warehouse_id}: {e}")
            errors.append({"id": warehouse_id, "error": str(e)})

    return {
        "status": "success",
        "message": f"Deleted {deleted} of {len(data.ids)} warehouses",
        "data": {
            "requested": len(data.ids),
            "deleted": deleted,
            "failed": len(errors),
            "errors": errors
        }
    }
