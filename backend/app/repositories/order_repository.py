"""
Order Repository - Data Access Layer for Orders

Handles all database queries for orders and returns Order domain models.
Order creation and deletion also move stock and customer counters, so they
run as single transactions.
"""
import logging
from datetime import date
from typing import List, Optional, Tuple, Dict, Any

from app.domain.order import (
    Order, OrderItem, OrderCreate, OrderUpdate, calculate_totals, money,
    EDITABLE_STATUSES, DELETABLE_STATUSES, ORDER_STATUSES, PAYMENT_STATUSES
)
from app.core.database import get_db_connection_dict
from app.core.errors import NotFound, BusinessRuleError, InsufficientStock, ValidationFailed

logger = logging.getLogger(__name__)

ORDER_COLUMNS = """
    o.id, o.user_id, o.order_number, o.customer_id, o.status, o.payment_status,
    o.subtotal, o.tax_amount, o.shipping_cost, o.discount_amount, o.total_amount,
    o.shipping_street, o.shipping_city, o.shipping_state, o.shipping_pincode,
    o.notes, o.created_at, o.updated_at, o.delivered_at,
    c.name as customer_name,
    c.email as customer_email,
    (SELECT COUNT(*) FROM order_items oi WHERE oi.order_id = o.id) as item_count
"""

SORTABLE_FIELDS = ("order_number", "status", "payment_status", "total_amount", "created_at", "delivered_at")


def format_order_number(sequence_value: int, on: Optional[date] = None) -> str:
    """ORD-YYYYMMDD-NNNNN"""
    on = on or date.today()
    return f"ORD-{on:%Y%m%d}-{sequence_value:05d}"


class OrderRepository:
    """
    Repository for Order data access

    All SQL queries for orders are centralized here.
    Returns Order domain models with customer info and items.
    """

    @staticmethod
    def _map_row_to_order(row: dict, items: Optional[List[dict]] = None) -> Order:
        return Order(
            id=row['id'],
            user_id=row.get('user_id'),
            order_number=row['order_number'],
            customer_id=row['customer_id'],
            customer_name=row.get('customer_name'),
            customer_email=row.get('customer_email'),
            status=row['status'],
            payment_status=row['payment_status'],
            subtotal=row['subtotal'],
            tax_amount=row['tax_amount'],
            shipping_cost=row.get('shipping_cost') or 0,
            discount_amount=row.get('discount_amount') or 0,
            total_amount=row['total_amount'],
            shipping_street=row.get('shipping_street'),
            shipping_city=row.get('shipping_city'),
            shipping_state=row.get('shipping_state'),
            shipping_pincode=row.get('shipping_pincode'),
            notes=row.get('notes'),
            item_count=row.get('item_count'),
            items=[OrderItem(**item) for item in (items or [])],
            created_at=row.get('created_at'),
            updated_at=row.get('updated_at'),
            delivered_at=row.get('delivered_at')
        )

    def find_by_id(self, order_id: int, user_id: int) -> Optional[Order]:
        """
        Find order by ID with customer info and items

        Returns:
            Order with all related data or None if not found
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {ORDER_COLUMNS}
                FROM orders o
                LEFT JOIN customers c ON o.customer_id = c.id
                WHERE o.id = %s AND o.user_id = %s
            """, (order_id, user_id))

            row = cursor.fetchone()
            if not row:
                return None

            cursor.execute("""
                SELECT id, order_id, product_id, product_name, product_sku,
                       quantity, unit_price, total_price
                FROM order_items
                WHERE order_id = %s
                ORDER BY id
            """, (order_id,))
            items = cursor.fetchall()

            return self._map_row_to_order(row, items)

        finally:
            cursor.close()
            conn.close()

    def find_all(
        self,
        user_id: int,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        customer_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        min_amount: Optional[float] = None,
        max_amount: Optional[float] = None,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        order: str = "DESC",
        limit: int = 10,
        offset: int = 0
    ) -> Tuple[List[Order], int]:
        """
        Find orders with filters

        Args:
            status / payment_status: Exact match filters
            customer_id: Orders of one customer
            start_date / end_date: Creation date range (inclusive)
            min_amount / max_amount: total_amount range (inclusive)
            search: Order number, customer name or customer email

        Returns:
            Tuple of (list of orders without items, total count)
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            conditions = ["o.user_id = %s"]
            params: list = [user_id]

            if status:
                conditions.append("o.status = %s")
                params.append(status)

            if payment_status:
                conditions.append("o.payment_status = %s")
                params.append(payment_status)

            if customer_id:
                conditions.append("o.customer_id = %s")
                params.append(customer_id)

            if start_date:
                conditions.append("o.created_at >= %s")
                params.append(start_date)

            if end_date:
                conditions.append("o.created_at < %s::date + INTERVAL '1 day'")
                params.append(end_date)

            if min_amount is not None:
                conditions.append("o.total_amount >= %s")
                params.append(min_amount)

            if max_amount is not None:
                conditions.append("o.total_amount <= %s")
                params.append(max_amount)

            if search:
                conditions.append("(o.order_number ILIKE %s OR c.name ILIKE %s OR c.email ILIKE %s)")
                search_term = f"%{search}%"
                params.extend([search_term, search_term, search_term])

            where_clause = " AND ".join(conditions)
            sort_field = sort_by if sort_by in SORTABLE_FIELDS else "created_at"
            direction = "ASC" if order.upper() == "ASC" else "DESC"

            cursor.execute(f"""
                SELECT COUNT(*) as total
                FROM orders o
                LEFT JOIN customers c ON o.customer_id = c.id
                WHERE {where_clause}
            """, params)
            total = cursor.fetchone()['total']

            cursor.execute(f"""
                SELECT {ORDER_COLUMNS}
                FROM orders o
                LEFT JOIN customers c ON o.customer_id = c.id
                WHERE {where_clause}
                ORDER BY o.{sort_field} {direction} NULLS LAST, o.id {direction}
                LIMIT %s OFFSET %s
            """, params + [limit, offset])

            return [self._map_row_to_order(row) for row in cursor.fetchall()], total

        finally:
            cursor.close()
            conn.close()

    def create(self, user_id: int, data: OrderCreate, tax_rate: float) -> Order:
        """
        Create an order in one transaction:
        lock customer and products, check stock, insert order and items,
        decrement stock with a movement per item, bump customer counters.

        Raises:
            NotFound: customer or a product doesn't exist for this user
            BusinessRuleError / InsufficientStock: product inactive or short on stock
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id FROM customers
                WHERE id = %s AND user_id = %s
                FOR UPDATE
            """, (data.customer_id, user_id))
            if not cursor.fetchone():
                raise NotFound("Customer")

            lines = []
            for item in data.items:
                cursor.execute("""
                    SELECT id, name, sku, price, stock, status
                    FROM products
                    WHERE id = %s AND user_id = %s
                    FOR UPDATE
                """, (item.product_id, user_id))
                product = cursor.fetchone()

                if not product:
                    raise NotFound(f"Product {item.product_id}")
                if product['status'] != 'active':
                    raise BusinessRuleError(f"Product {product['name']} is not available for ordering")
                if product['stock'] < item.quantity:
                    raise InsufficientStock(product['name'], product['stock'], item.quantity)

                unit_price = money(item.unit_price if item.unit_price is not None else product['price'])
                lines.append({
                    "product": product,
                    "quantity": item.quantity,
                    "unit_price": unit_price,
                    "total_price": money(unit_price * item.quantity),
                })

            totals = calculate_totals(
                [line["total_price"] for line in lines],
                tax_rate,
                data.shipping_cost,
                data.discount_amount
            )
            if totals["total_amount"] < 0:
                gross = totals["total_amount"] + totals["discount_amount"]
                raise ValidationFailed(
                    "Discount cannot exceed the order amount",
                    errors=[{"field": "discount_amount", "message": f"Must be at most {gross}"}]
                )

            cursor.execute("SELECT nextval('order_number_seq') as seq")
            order_number = format_order_number(cursor.fetchone()['seq'])

            cursor.execute("""
                INSERT INTO orders (
                    user_id, customer_id, order_number, status, payment_status,
                    subtotal, tax_amount, shipping_cost, discount_amount, total_amount,
                    shipping_street, shipping_city, shipping_state, shipping_pincode,
                    notes, created_at, updated_at
                )
                VALUES (%s, %s, %s, 'pending', 'pending', %s, %s, %s, %s, %s,
                        %s, %s, %s, %s, %s, NOW(), NOW())
                RETURNING id
            """, (
                user_id, data.customer_id, order_number,
                totals["subtotal"], totals["tax_amount"], totals["shipping_cost"],
                totals["discount_amount"], totals["total_amount"],
                data.shipping_street, data.shipping_city, data.shipping_state,
                data.shipping_pincode, data.notes
            ))
            order_id = cursor.fetchone()['id']

            for line in lines:
                product = line["product"]
                cursor.execute("""
                    INSERT INTO order_items (
                        order_id, product_id, product_name, product_sku,
                        quantity, unit_price, total_price
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s)
                """, (
                    order_id, product['id'], product['name'], product['sku'],
                    line["quantity"], line["unit_price"], line["total_price"]
                ))

                stock_after = product['stock'] - line["quantity"]
                cursor.execute("""
                    UPDATE products SET stock = %s, updated_at = NOW() WHERE id = %s
                """, (stock_after, product['id']))

                cursor.execute("""
                    INSERT INTO stock_movements
                    (product_id, user_id, order_id, movement_type, quantity, stock_before, stock_after, reason)
                    VALUES (%s, %s, %s, 'order', %s, %s, %s, %s)
                """, (
                    product['id'], user_id, order_id, -line["quantity"],
                    product['stock'], stock_after, f"Order {order_number}"
                ))

            cursor.execute("""
                UPDATE customers
                SET total_orders = total_orders + 1,
                    total_revenue = total_revenue + %s,
                    updated_at = NOW()
                WHERE id = %s
            """, (totals["total_amount"], data.customer_id))

            conn.commit()
            logger.info(f"Order {order_number} created (id={order_id}, total={totals['total_amount']})")

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

        return self.find_by_id(order_id, user_id)

    def update_details(self, order_id: int, user_id: int, data: OrderUpdate) -> Optional[Order]:
        """
        Change shipping address / notes.

        Raises:
            BusinessRuleError: if the order is past the confirmed stage
        """
        changes = data.model_dump(exclude_unset=True)

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id, status FROM orders
                WHERE id = %s AND user_id = %s
                FOR UPDATE
            """, (order_id, user_id))
            current = cursor.fetchone()

            if not current:
                conn.rollback()
                return None

            if current['status'] not in EDITABLE_STATUSES:
                raise BusinessRuleError(
                    f"Order cannot be edited in status '{current['status']}'. "
                    f"Only {' or '.join(EDITABLE_STATUSES)} orders can be edited"
                )

            update_fields = []
            values = []
            for field in ("shipping_street", "shipping_city", "shipping_state", "shipping_pincode", "notes"):
                if field in changes:
                    update_fields.append(f"{field} = %s")
                    values.append(changes[field])

            if update_fields:
                update_fields.append("updated_at = NOW()")
                values.extend([order_id, user_id])
                cursor.execute(f"""
                    UPDATE orders
                    SET {', '.join(update_fields)}
                    WHERE id = %s AND user_id = %s
                """, values)

            conn.commit()

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

        return self.find_by_id(order_id, user_id)

    def update_status(
        self,
        order_id: int,
        user_id: int,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Optional[Order]:
        """
        Set status and/or payment status. Any status may follow any other;
        moving to delivered stamps delivered_at.
        """
        update_fields = []
        values: list = []

        if status:
            update_fields.append("status = %s")
            values.append(status)
            if status == "delivered":
                update_fields.append("delivered_at = COALESCE(delivered_at, NOW())")

        if payment_status:
            update_fields.append("payment_status = %s")
            values.append(payment_status)

        if notes is not None:
            update_fields.append("notes = %s")
            values.append(notes)

        if not update_fields:
            return self.find_by_id(order_id, user_id)

        update_fields.append("updated_at = NOW()")
        values.extend([order_id, user_id])

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                UPDATE orders
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
        return self.find_by_id(order_id, user_id)

    def bulk_update_status(self, order_ids: List[int], user_id: int, status: str) -> Dict[str, List[int]]:
        """Set the same status on many orders; ids not owned by the user are reported back"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            delivered_clause = ", delivered_at = COALESCE(delivered_at, NOW())" if status == "delivered" else ""
            cursor.execute(f"""
                UPDATE orders
                SET status = %s, updated_at = NOW(){delivered_clause}
                WHERE user_id = %s AND id = ANY(%s)
                RETURNING id
            """, (status, user_id, list(order_ids)))

            updated = sorted(row['id'] for row in cursor.fetchall())
            conn.commit()

            not_found = [order_id for order_id in order_ids if order_id not in set(updated)]
            return {"updated": updated, "not_found": not_found}

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def delete(self, order_id: int, user_id: int) -> bool:
        """
        Delete a pending or cancelled order, restoring stock and customer counters.

        Raises:
            BusinessRuleError: if the order is in any other status
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id, order_number, status, customer_id, total_amount
                FROM orders
                WHERE id = %s AND user_id = %s
                FOR UPDATE
            """, (order_id, user_id))
            order = cursor.fetchone()

            if not order:
                conn.rollback()
                return False

            if order['status'] not in DELETABLE_STATUSES:
                raise BusinessRuleError(
                    f"Cannot delete order in status '{order['status']}'. "
                    f"Only {' or '.join(DELETABLE_STATUSES)} orders can be deleted"
                )

            cursor.execute("""
                SELECT oi.product_id, oi.quantity, p.stock
                FROM order_items oi
                JOIN products p ON p.id = oi.product_id
                WHERE oi.order_id = %s
                FOR UPDATE OF p
            """, (order_id,))

            for item in cursor.fetchall():
                stock_after = item['stock'] + item['quantity']
                cursor.execute("""
                    UPDATE products SET stock = %s, updated_at = NOW() WHERE id = %s
                """, (stock_after, item['product_id']))
                cursor.execute("""
                    INSERT INTO stock_movements
                    (product_id, user_id, movement_type, quantity, stock_before, stock_after, reason)
                    VALUES (%s, %s, 'order_cancel', %s, %s, %s, %s)
                """, (
                    item['product_id'], user_id, item['quantity'], item['stock'],
                    stock_after, f"Order {order['order_number']} deleted"
                ))

            cursor.execute("""
                UPDATE customers
                SET total_orders = GREATEST(total_orders - 1, 0),
                    total_revenue = GREATEST(total_revenue - %s, 0),
                    updated_at = NOW()
                WHERE id = %s
            """, (order['total_amount'], order['customer_id']))

            cursor.execute("DELETE FROM orders WHERE id = %s", (order_id,))

            conn.commit()
            logger.info(f"Order {order['order_number']} deleted, stock restored")
            return True

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def get_stats(self, user_id: int) -> Dict[str, Any]:
        """
        Order statistics

        Returns counts per status and per payment status, revenue and
        average order value.
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            status_counts = ",\n".join(
                f"COUNT(*) FILTER (WHERE status = '{s}') as {s}_orders" for s in ORDER_STATUSES
            )
            payment_counts = ",\n".join(
                f"COUNT(*) FILTER (WHERE payment_status = '{s}') as payment_{s}" for s in PAYMENT_STATUSES
            )
            cursor.execute(f"""
                SELECT
                    COUNT(*) as total_orders,
                    {status_counts},
                    {payment_counts},
                    COALESCE(SUM(total_amount), 0) as total_revenue,
                    COALESCE(SUM(total_amount) FILTER (WHERE status = 'delivered'), 0) as delivered_revenue,
                    COALESCE(AVG(total_amount), 0) as average_order_value
                FROM orders
                WHERE user_id = %s
            """, (user_id,))

            stats = dict(cursor.fetchone())
            for key in ('total_revenue', 'delivered_revenue', 'average_order_value'):
                stats[key] = round(float(stats[key]), 2)
            return stats

        finally:
            cursor.close()
            conn.close()

    def find_daily_revenue(self, user_id: int, days: int = 60) -> List[Dict]:
        """Revenue per day for the last N days, zero-filled (cancelled/returned excluded)"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT d::date as day,
                       COUNT(o.id) as order_count,
                       COALESCE(SUM(o.total_amount), 0) as revenue
                FROM generate_series(CURRENT_DATE - (%s - 1) * INTERVAL '1 day', CURRENT_DATE, INTERVAL '1 day') d
                LEFT JOIN orders o
                    ON DATE(o.created_at) = d::date
                   AND o.user_id = %s
                   AND o.status NOT IN ('cancelled', 'returned')
                GROUP BY d
                ORDER BY d
            """, (days, user_id))

            return [
                {'day': row['day'], 'order_count': row['order_count'], 'revenue': float(row['revenue'])}
                for row in cursor.fetchall()
            ]

        finally:
            cursor.close()
            conn.close()
