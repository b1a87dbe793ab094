"""
Customer Repository - Data Access Layer for Customers and their addresses
"""
import logging
from typing import List, Optional, Tuple, Dict

from app.domain.customer import (
    Customer, Address, CustomerCreate, CustomerUpdate, AddressCreate, AddressUpdate
)
from app.core.database import get_db_connection_dict
from app.core.errors import BusinessRuleError

logger = logging.getLogger(__name__)

CUSTOMER_COLUMNS = """
    id, user_id, name, email, phone, business_name, gst_number, segment,
    total_orders, total_revenue, created_at, updated_at
"""

ADDRESS_COLUMNS = "id, customer_id, type, street, city, state, pincode, is_default, created_at"

SORTABLE_FIELDS = ("name", "email", "segment", "total_orders", "total_revenue", "created_at")

UPDATABLE_FIELDS = ("name", "email", "phone", "business_name", "gst_number", "segment")


class CustomerRepository:
    """Repository for Customer data access"""

    @staticmethod
    def _map_row_to_customer(row: dict, addresses: Optional[List[Address]] = None) -> Customer:
        return Customer(
            id=row['id'],
            user_id=row.get('user_id'),
            name=row['name'],
            email=row['email'],
            phone=row.get('phone'),
            business_name=row.get('business_name'),
            gst_number=row.get('gst_number'),
            segment=row.get('segment') or "new",
            total_orders=row.get('total_orders') or 0,
            total_revenue=row.get('total_revenue') or 0,
            created_at=row.get('created_at'),
            updated_at=row.get('updated_at'),
            addresses=addresses or []
        )

    def find_by_id(self, customer_id: int, user_id: int) -> Optional[Customer]:
        """Customer with addresses (default addresses first)"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {CUSTOMER_COLUMNS}
                FROM customers
                WHERE id = %s AND user_id = %s
            """, (customer_id, user_id))
            row = cursor.fetchone()
            if not row:
                return None

            cursor.execute(f"""
                SELECT {ADDRESS_COLUMNS}
                FROM customer_addresses
                WHERE customer_id = %s
                ORDER BY is_default DESC, id
            """, (customer_id,))
            addresses = [Address(**a) for a in cursor.fetchall()]

            return self._map_row_to_customer(row, addresses)

        finally:
            cursor.close()
            conn.close()

    def find_recent_orders(self, customer_id: int, user_id: int, limit: int = 10) -> List[Dict]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id, order_number, status, payment_status, total_amount, created_at
                FROM orders
                WHERE customer_id = %s AND user_id = %s
                ORDER BY created_at DESC
                LIMIT %s
            """, (customer_id, user_id, limit))

            orders = []
            for row in cursor.fetchall():
                order = dict(row)
                order['total_amount'] = float(order['total_amount'])
                orders.append(order)
            return orders

        finally:
            cursor.close()
            conn.close()

    def email_exists(self, email: str, user_id: int, exclude_id: Optional[int] = None) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id FROM customers
                WHERE user_id = %s AND email = %s AND (%s IS NULL OR id <> %s)
            """, (user_id, email.lower(), exclude_id, exclude_id))
            return cursor.fetchone() is not None

        finally:
            cursor.close()
            conn.close()

    def find_all(
        self,
        user_id: int,
        segment: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        order: str = "DESC",
        limit: int = 10,
        offset: int = 0
    ) -> Tuple[List[Customer], int]:
        """
        Find customers with filters

        Args:
            segment: premium, regular or new
            search: Search in name, email, phone or business name

        Returns:
            Tuple of (list of customers, total count)
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            conditions = ["user_id = %s"]
            params: list = [user_id]

            if segment:
                conditions.append("segment = %s")
                params.append(segment)

            if search:
                conditions.append(
                    "(name ILIKE %s OR email ILIKE %s OR phone ILIKE %s OR business_name ILIKE %s)"
                )
                search_term = f"%{search}%"
                params.extend([search_term] * 4)

            where_clause = " AND ".join(conditions)
            sort_field = sort_by if sort_by in SORTABLE_FIELDS else "created_at"
            direction = "ASC" if order.upper() == "ASC" else "DESC"

            cursor.execute(f"""
                SELECT COUNT(*) as total
                FROM customers
                WHERE {where_clause}
            """, params)
            total = cursor.fetchone()['total']

            cursor.execute(f"""
                SELECT {CUSTOMER_COLUMNS}
                FROM customers
                WHERE {where_clause}
                ORDER BY {sort_field} {direction}, id {direction}
                LIMIT %s OFFSET %s
            """, params + [limit, offset])

            return [self._map_row_to_customer(row) for row in cursor.fetchall()], total

        finally:
            cursor.close()
            conn.close()

    def create(self, user_id: int, data: CustomerCreate) -> Customer:
        """Insert the customer and any addresses in one transaction"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO customers (
                    user_id, name, email, phone, business_name, gst_number, segment,
                    total_orders, total_revenue, created_at, updated_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, 0, 0, NOW(), NOW())
                RETURNING id
            """, (
                user_id, data.name, data.email, data.phone, data.business_name,
                data.gst_number, data.segment
            ))
            customer_id = cursor.fetchone()['id']

            for address in data.addresses:
                self._insert_address(cursor, customer_id, address)

            conn.commit()
            logger.info(f"Customer {customer_id} created for user {user_id}")

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

        return self.find_by_id(customer_id, user_id)

    def update(self, customer_id: int, user_id: int, data: CustomerUpdate) -> Optional[Customer]:
        changes = data.model_dump(exclude_unset=True)

        update_fields = []
        values = []
        for field in UPDATABLE_FIELDS:
            if field in changes:
                update_fields.append(f"{field} = %s")
                values.append(changes[field])

        if not update_fields:
            return self.find_by_id(customer_id, user_id)

        update_fields.append("updated_at = NOW()")
        values.extend([customer_id, user_id])

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                UPDATE customers
                SET {', '.join(update_fields)}
                WHERE id = %s AND user_id = %s
                RETURNING id
            """, values)
            updated = cursor.fetchone()
            conn.commit()

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

        if not updated:
            return None
        return self.find_by_id(customer_id, user_id)

    def delete(self, customer_id: int, user_id: int) -> bool:
        """
        Delete a customer that has no orders.

        Raises:
            BusinessRuleError: if any order references the customer
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT COUNT(*) as order_count FROM orders WHERE customer_id = %s
            """, (customer_id,))
            if cursor.fetchone()['order_count'] > 0:
                raise BusinessRuleError("Cannot delete customer with existing orders")

            cursor.execute("""
                DELETE FROM customers
                WHERE id = %s AND user_id = %s
                RETURNING id
            """, (customer_id, user_id))
            deleted = cursor.fetchone() is not None
            conn.commit()
            return deleted

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    # =========================================================================
    # Addresses
    # =========================================================================

    def add_address(self, customer_id: int, user_id: int, data: AddressCreate) -> Optional[Address]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            if not self._owns_customer(cursor, customer_id, user_id):
                conn.rollback()
                return None

            address = self._insert_address(cursor, customer_id, data)
            conn.commit()
            return address

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def update_address(
        self,
        customer_id: int,
        address_id: int,
        user_id: int,
        data: AddressUpdate
    ) -> Optional[Address]:
        changes = data.model_dump(exclude_unset=True)

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            if not self._owns_customer(cursor, customer_id, user_id):
                conn.rollback()
                return None

            cursor.execute(f"""
                SELECT {ADDRESS_COLUMNS} FROM customer_addresses
                WHERE id = %s AND customer_id = %s
            """, (address_id, customer_id))
            current = cursor.fetchone()
            if not current:
                conn.rollback()
                return None

            if changes.get('is_default'):
                self._clear_default(cursor, customer_id, changes.get('type', current['type']))

            update_fields = []
            values = []
            for field in ("type", "street", "city", "state", "pincode", "is_default"):
                if field in changes:
                    update_fields.append(f"{field} = %s")
                    values.append(changes[field])

            if update_fields:
                values.extend([address_id, customer_id])
                cursor.execute(f"""
                    UPDATE customer_addresses
                    SET {', '.join(update_fields)}
                    WHERE id = %s AND customer_id = %s
                    RETURNING {ADDRESS_COLUMNS}
                """, values)
                current = cursor.fetchone()

            conn.commit()
            return Address(**current)

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def delete_address(self, customer_id: int, address_id: int, user_id: int) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            if not self._owns_customer(cursor, customer_id, user_id):
                conn.rollback()
                return False

            cursor.execute("""
                DELETE FROM customer_addresses
                WHERE id = %s AND customer_id = %s
                RETURNING id
            """, (address_id, customer_id))
            deleted = cursor.fetchone() is not None
            conn.commit()
            return deleted

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    # =========================================================================
    # Analytics inputs
    # =========================================================================

    def find_order_summaries(self, user_id: int) -> List[Dict]:
        """Per customer: counters plus the date of the latest order (for RFM / churn)"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT
                    c.id, c.name, c.email, c.segment, c.total_orders, c.total_revenue,
                    c.created_at,
                    MAX(o.created_at) as last_order_at
                FROM customers c
                LEFT JOIN orders o ON o.customer_id = c.id AND o.status NOT IN ('cancelled', 'returned')
                WHERE c.user_id = %s
                GROUP BY c.id
                ORDER BY c.id
            """, (user_id,))

            rows = []
            for row in cursor.fetchall():
                item = dict(row)
                item['total_revenue'] = float(item['total_revenue'] or 0)
                rows.append(item)
            return rows

        finally:
            cursor.close()
            conn.close()

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _owns_customer(cursor, customer_id: int, user_id: int) -> bool:
        cursor.execute("""
            SELECT id FROM customers WHERE id = %s AND user_id = %s
        """, (customer_id, user_id))
        return cursor.fetchone() is not None

    @staticmethod
    def _clear_default(cursor, customer_id: int, address_type: str):
        # Only one default address per type
        cursor.execute("""
            UPDATE customer_addresses SET is_default = FALSE
            WHERE customer_id = %s AND type = %s AND is_default
        """, (customer_id, address_type))

    def _insert_address(self, cursor, customer_id: int, data: AddressCreate) -> Address:
        if data.is_default:
            self._clear_default(cursor, customer_id, data.type)

        cursor.execute(f"""
            INSERT INTO customer_addresses (customer_id, type, street, city, state, pincode, is_default)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            RETURNING {ADDRESS_COLUMNS}
        """, (
            customer_id, data.type, data.street, data.city, data.state,
            data.pincode, data.is_default
        ))
        return Address(**cursor.fetchone())
