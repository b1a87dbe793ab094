"""
Customers API Endpoints
Customer records with their billing / shipping addresses
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.auth import TokenUser, get_current_user, require_staff, require_manager
from app.core.errors import NotFound, ValidationFailed
from app.core.pagination import PaginationParams, paginated
from app.domain.customer import (
    CustomerCreate,
    CustomerUpdate,
    AddressCreate,
    AddressUpdate,
    CustomerSegment,
)
from app.repositories.customer_repository import CustomerRepository
from app.services.audit_service import AuditTrail, get_audit_trail

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_or_404(repo: CustomerRepository, customer_id: int, user_id: int):
    customer = repo.find_by_id(customer_id, user_id)
    if not customer:
        raise NotFound("Customer")
    return customer


def _email_taken():
    return ValidationFailed(
        "Customer with this email already exists",
        errors=[{"field": "email", "message": "Customer with this email already exists"}]
    )


@router.get("/")
async def get_customers(
    pagination: PaginationParams = Depends(),
    segment: Optional[CustomerSegment] = Query(None, description="premium, regular or new"),
    user: TokenUser = Depends(get_current_user)
):
    """List customers; search matches name, email, phone or business name"""
    try:
        repo = CustomerRepository()
        customers, total = repo.find_all(
            user_id=user.id,
            segment=segment,
            search=pagination.search,
            sort_by=pagination.sort_by or "created_at",
            order=pagination.order,
            limit=pagination.limit,
            offset=pagination.offset
        )
        return paginated([c.to_dict() for c in customers], total, pagination)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching customers: {e}")
        raise HTTPException(status_code=500, detail=f"Error fetching customers: {str(e)}")


@router.get("/{customer_id}")
async def get_customer(customer_id: int, user: TokenUser = Depends(get_current_user)):
    """Customer with addresses and the 10 most recent orders"""
    repo = CustomerRepository()
    customer = _get_or_404(repo, customer_id, user.id)

    data = customer.to_dict()
    data['recent_orders'] = repo.find_recent_orders(customer_id, user.id, limit=10)
    return {"status": "success", "data": data}


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_customer(
    data: CustomerCreate,
    user: TokenUser = Depends(require_staff),
    audit: AuditTrail = Depends(get_audit_trail)
):
    repo = CustomerRepository()

    if repo.email_exists(data.email, user.id):
        raise _email_taken()

    customer = repo.create(user.id, data)
    logger.info(f"Customer {customer.id} created by user {user.id}")
    audit.created(user.id, "customer", customer.id, customer.to_dict())

    return {
        "status": "success",
        "message": "Customer created successfully",
        "data": customer.to_dict()
    }


@router.put("/{customer_id}")
async def update_customer(
    customer_id: int,
    data: CustomerUpdate,
    user: TokenUser = Depends(require_staff),
    audit: AuditTrail = Depends(get_audit_trail)
):
    repo = CustomerRepository()

    if data.email and repo.email_exists(data.email, user.id, exclude_id=customer_id):
        raise _email_taken()

    before = _get_or_404(repo, customer_id, user.id)
    customer = repo.update(customer_id, user.id, data)
    if not customer:
        raise NotFound("Customer")

    audit.updated(user.id, "customer", customer_id, before.to_dict(), customer.to_dict(),
                  fields=data.model_fields_set)

    return {
        "status": "success",
        "message": "Customer updated successfully",
        "data": customer.to_dict()
    }


@router.delete("/{customer_id}")
async def delete_customer(
    customer_id: int,
    user: TokenUser = Depends(require_manager),
    audit: AuditTrail = Depends(get_audit_trail)
):
    """Customers with orders cannot be deleted"""
    repo = CustomerRepository()
    customer = _get_or_404(repo, customer_id, user.id)
    if not repo.delete(customer_id, user.id):
        raise NotFound("Customer")

    logger.info(f"Customer {customer_id} deleted by user {user.id}")
    audit.deleted(user.id, "customer", customer_id, customer.to_dict())
    return {"status": "success", "message": "Customer deleted successfully"}


# =============================================================================
# Addresses
# =============================================================================

@router.post("/{customer_id}/addresses", status_code=status.HTTP_201_CREATED)
async def add_customer_address(
    customer_id: int,
    data: AddressCreate,
    user: TokenUser = Depends(require_staff),
    audit: AuditTrail = Depends(get_audit_trail)
):
    repo = CustomerRepository()
    address = repo.add_address(customer_id, user.id, data)
    if not address:
        raise NotFound("Customer")

    audit.created(user.id, "customer_address", address.id, address.model_dump())

    return {
        "status": "success",
        "message": "Address added successfully",
        "data": address.model_dump()
    }


@router.put("/{customer_id}/addresses/{address_id}")
async def update_customer_address(
    customer_id: int,
    address_id: int,
    data: AddressUpdate,
    user: TokenUser = Depends(require_staff),
    audit: AuditTrail = Depends(get_audit_trail)
):
    repo = CustomerRepository()
    address = repo.update_address(customer_id, address_id, user.id, data)
    if not address:
        raise NotFound("Address")

    # Previous address values are not kept
    audit.updated(user.id, "customer_address", address_id, {}, address.model_dump(), fields=data.model_fields_set)

    return {
        "status": "success",
        "message": "Address updated successfully",
        "data": address.model_dump()
    }


@router.delete("/{customer_id}/addresses/{address_id}")
async def delete_customer_address(
    customer_id: int,
    address_id: int,
    user: TokenUser = Depends(require_staff),
    audit: AuditTrail = Depends(get_audit_trail)
):
    repo = CustomerRepository()
    if not repo.delete_address(customer_id, address_id, user.id):
        raise NotFound("Address")

    audit.deleted(user.id, "customer_address", address_id, {"customer_id": customer_id})

    return {"status": "success", "message": "Address deleted successfully"}
