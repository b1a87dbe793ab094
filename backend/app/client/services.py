"""
Resource wrappers over ApiClient, one per API area.

List calls return (items, pagination); single-object calls return the
unwrapped `data` member.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from app.client.api_client import ApiClient, ApiError, unwrap

logger = logging.getLogger(__name__)


def _clean(params: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in params.items() if value is not None}


def _page(payload: Dict[str, Any]) -> Tuple[List[Dict], Dict]:
    return payload.get("data", []), payload.get("pagination", {})


class ResourceService:
    """CRUD for a REST collection such as /warehouses"""

    path = ""

    def __init__(self, client: ApiClient):
        self.client = client

    def list(self, page: int = 1, limit: int = 10, search: Optional[str] = None,
             sort_by: Optional[str] = None, order: Optional[str] = None, **filters) -> Tuple[List[Dict], Dict]:
        params = _clean({
            "page": page, "limit": limit, "search": search,
            "sortBy": sort_by, "order": order, **filters
        })
        return _page(self.client.get(f"{self.path}/", params=params))

    def get(self, item_id: int) -> Dict:
        return unwrap(self.client.get(f"{self.path}/{item_id}"))

    def create(self, data: Dict) -> Dict:
        return unwrap(self.client.post(f"{self.path}/", json=data))

    def update(self, item_id: int, data: Dict) -> Dict:
        return unwrap(self.client.put(f"{self.path}/{item_id}", json=data))

    def delete(self, item_id: int):
        self.client.delete(f"{self.path}/{item_id}")

    def bulk_delete(self, ids: List[int]) -> Dict[str, int]:
        """
        Delete ids one at a time.

        A failure is counted and does not stop the remaining deletes.
        """
        success, failed = 0, 0
        for item_id in ids:
            try:
                self.delete(item_id)
                success += 1
            except ApiError as e:
                logger.warning(f"Delete of {self.path}/{item_id} failed: {e.message}")
                failed += 1
        return {"success": success, "failed": failed}

    def export(self, format: str = "csv", **filters) -> bytes:
        return self.client.download(f"{self.path}/export", params=_clean({"format": format, **filters}))


class WarehousesService(ResourceService):
    path = "/warehouses"

    def stats(self) -> Dict:
        return unwrap(self.client.get(f"{self.path}/stats"))

    def nearby(self, pincode: str, radius: int = 100) -> List[Dict]:
        return unwrap(self.client.get(f"{self.path}/nearby", params={"pincode": pincode, "radius": radius}))

    def update_capacity(self, warehouse_id: int, capacity: Optional[int] = None,
                        occupied: Optional[int] = None, notes: Optional[str] = None) -> Dict:
        body = _clean({"capacity": capacity, "occupied": occupied, "notes": notes})
        return unwrap(self.client.patch(f"{self.path}/{warehouse_id}/capacity", json=body))

    def update_status(self, warehouse_id: int, status: str, notes: Optional[str] = None) -> Dict:
        body = _clean({"status": status, "notes": notes})
        return unwrap(self.client.patch(f"{self.path}/{warehouse_id}/status", json=body))

    def update_amenities(self, warehouse_id: int, amenities: List[str]) -> Dict:
        return unwrap(self.client.put(f"{self.path}/{warehouse_id}/amenities", json={"amenities": amenities}))


class OrdersService(ResourceService):
    path = "/orders"

    def stats(self) -> Dict:
        return unwrap(self.client.get(f"{self.path}/stats"))

    def update_status(self, order_id: int, status: Optional[str] = None,
                      payment_status: Optional[str] = None, notes: Optional[str] = None) -> Dict:
        body = _clean({"status": status, "payment_status": payment_status, "notes": notes})
        return unwrap(self.client.put(f"{self.path}/{order_id}/status", json=body))

    def bulk_update_status(self, order_ids: List[int], status: str) -> Dict:
        return unwrap(self.client.post(f"{self.path}/bulk-status", json={"order_ids": order_ids, "status": status}))


class CustomersService(ResourceService):
    path = "/customers"

    def add_address(self, customer_id: int, data: Dict) -> Dict:
        return unwrap(self.client.post(f"{self.path}/{customer_id}/addresses", json=data))

    def update_address(self, customer_id: int, address_id: int, data: Dict) -> Dict:
        return unwrap(self.client.put(f"{self.path}/{customer_id}/addresses/{address_id}", json=data))

    def delete_address(self, customer_id: int, address_id: int):
        self.client.delete(f"{self.path}/{customer_id}/addresses/{address_id}")


class ProductsService(ResourceService):
    path = "/products"

    def categories(self) -> List[Dict]:
        return unwrap(self.client.get(f"{self.path}/categories"))

    def low_stock(self, limit: int = 50) -> List[Dict]:
        return unwrap(self.client.get(f"{self.path}/alerts/low-stock", params={"limit": limit}))

    def update_stock(self, product_id: int, quantity: int, type: str = "set", reason: Optional[str] = None) -> Dict:
        body = _clean({"quantity": quantity, "type": type, "reason": reason})
        return unwrap(self.client.patch(f"{self.path}/{product_id}/stock", json=body))

    def movements(self, product_id: int, limit: int = 50) -> List[Dict]:
        return unwrap(self.client.get(f"{self.path}/{product_id}/movements", params={"limit": limit}))


class UsersService(ResourceService):
    path = "/users"

    def assign_role(self, user_id: int, role: str) -> Dict:
        return unwrap(self.client.put(f"{self.path}/{user_id}/role", json={"role": role}))

    def roles(self) -> List[Dict]:
        return unwrap(self.client.get("/roles/"))


class DashboardService:
    def __init__(self, client: ApiClient):
        self.client = client

    def overview(self) -> Dict:
        return unwrap(self.client.get("/dashboard/"))

    def stats(self) -> Dict:
        return unwrap(self.client.get("/dashboard/stats"))

    def recent_orders(self, limit: int = 10) -> List[Dict]:
        return unwrap(self.client.get("/dashboard/recent-orders", params={"limit": limit}))

    def low_stock(self, limit: int = 10) -> List[Dict]:
        return unwrap(self.client.get("/dashboard/low-stock", params={"limit": limit}))

    def top_customers(self, limit: int = 10) -> List[Dict]:
        return unwrap(self.client.get("/dashboard/top-customers", params={"limit": limit}))

    def revenue_chart(self, period: str = "30days") -> List[Dict]:
        return unwrap(self.client.get("/dashboard/revenue-chart", params={"period": period}))

    def order_status(self) -> List[Dict]:
        return unwrap(self.client.get("/dashboard/order-status"))

    def product_categories(self) -> List[Dict]:
        return unwrap(self.client.get("/dashboard/product-categories"))

    def customer_segments(self) -> List[Dict]:
        return unwrap(self.client.get("/dashboard/customer-segments"))

    def warehouse_utilization(self) -> List[Dict]:
        return unwrap(self.client.get("/dashboard/warehouse-utilization"))


class AuthService:
    """Login / logout against the API, keeping the client's TokenStore in sync"""

    def __init__(self, client: ApiClient):
        self.client = client

    def _store(self, data: Dict) -> Dict:
        self.client.tokens.set_tokens(data["accessToken"], data.get("refreshToken"))
        self.client.tokens.user = data.get("user")
        return data.get("user")

    def login(self, email: str, password: str) -> Dict:
        data = unwrap(self.client.post("/auth/login", json={"email": email, "password": password}))
        return self._store(data)

    def register(self, email: str, password: str, first_name: str, last_name: Optional[str] = None,
                 phone: Optional[str] = None) -> Dict:
        body = _clean({
            "email": email, "password": password, "first_name": first_name,
            "last_name": last_name, "phone": phone
        })
        return self._store(unwrap(self.client.post("/auth/register", json=body)))

    def me(self) -> Dict:
        user = unwrap(self.client.get("/auth/me"))
        self.client.tokens.user = user
        return user

    def change_password(self, current_password: str, new_password: str):
        self.client.post("/auth/change-password", json={
            "current_password": current_password,
            "new_password": new_password
        })

    def logout(self):
        """Revoke the refresh token server-side; local tokens are cleared regardless"""
        try:
            if self.client.tokens.access_token:
                self.client.post("/auth/logout", json={"refreshToken": self.client.tokens.refresh_token})
        except ApiError as e:
            logger.warning(f"Logout request failed: {e.message}")
        finally:
            self.client.tokens.clear()
