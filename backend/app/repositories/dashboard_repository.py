"""
Dashboard Repository - aggregate queries behind the dashboard widgets

Returns plain dicts: these are read-only projections, not entities.
"""
from typing import List, Dict

from app.core.database import get_db_connection_dict

REVENUE_PERIODS = {
    # period: (lookback interval, date_trunc unit)
    "7days": ("7 days", "day"),
    "30days": ("30 days", "day"),
    "12months": ("12 months", "month"),
}


def _floats(row: dict, *fields) -> dict:
    item = dict(row)
    for field in fields:
        if item.get(field) is not None:
            item[field] = round(float(item[field]), 2)
    return item


class DashboardRepository:
    """Aggregate queries for the dashboard, scoped to one user"""

    def get_stats(self, user_id: int) -> Dict:
        """Headline numbers grouped by orders, customers, products and warehouses"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT
                    (SELECT COUNT(*) FROM orders WHERE user_id = %(uid)s) as total_orders,
                    (SELECT COUNT(*) FROM orders WHERE user_id = %(uid)s AND status = 'pending') as pending_orders,
                    (SELECT COUNT(*) FROM orders WHERE user_id = %(uid)s AND status = 'delivered') as delivered_orders,
                    (SELECT COALESCE(SUM(total_amount), 0) FROM orders WHERE user_id = %(uid)s) as total_revenue,
                    (SELECT COALESCE(SUM(total_amount), 0) FROM orders
                        WHERE user_id = %(uid)s AND status = 'delivered') as delivered_revenue,
                    (SELECT COALESCE(AVG(total_amount), 0) FROM orders WHERE user_id = %(uid)s) as average_order_value,

                    (SELECT COUNT(*) FROM customers WHERE user_id = %(uid)s) as total_customers,
                    (SELECT COUNT(*) FROM customers WHERE user_id = %(uid)s AND segment = 'premium') as premium_customers,
                    (SELECT COUNT(*) FROM customers WHERE user_id = %(uid)s AND segment = 'new') as new_customers,

                    (SELECT COUNT(*) FROM products WHERE user_id = %(uid)s) as total_products,
                    (SELECT COUNT(*) FROM products WHERE user_id = %(uid)s AND status = 'active') as active_products,
                    (SELECT COUNT(*) FROM products
                        WHERE user_id = %(uid)s AND stock <= reorder_level) as low_stock_products,
                    (SELECT COALESCE(SUM(stock * price), 0) FROM products WHERE user_id = %(uid)s) as inventory_value,

                    (SELECT COUNT(*) FROM warehouses WHERE user_id = %(uid)s) as total_warehouses,
                    (SELECT COUNT(*) FROM warehouses WHERE user_id = %(uid)s AND status = 'active') as active_warehouses,
                    (SELECT COALESCE(SUM(capacity), 0) FROM warehouses WHERE user_id = %(uid)s) as total_capacity,
                    (SELECT COALESCE(SUM(occupied), 0) FROM warehouses WHERE user_id = %(uid)s) as total_occupied
            """, {"uid": user_id})
            row = cursor.fetchone()

            total_capacity = int(row['total_capacity'])
            total_occupied = int(row['total_occupied'])

            return {
                "orders": {
                    "total": row['total_orders'],
                    "pending": row['pending_orders'],
                    "delivered": row['delivered_orders'],
                    "total_revenue": round(float(row['total_revenue']), 2),
                    "delivered_revenue": round(float(row['delivered_revenue']), 2),
                    "average_order_value": round(float(row['average_order_value']), 2),
                },
                "customers": {
                    "total": row['total_customers'],
                    "premium": row['premium_customers'],
                    "new": row['new_customers'],
                },
                "products": {
                    "total": row['total_products'],
                    "active": row['active_products'],
                    "low_stock": row['low_stock_products'],
                    "inventory_value": round(float(row['inventory_value']), 2),
                },
                "warehouses": {
                    "total": row['total_warehouses'],
                    "active": row['active_warehouses'],
                    "total_capacity": total_capacity,
                    "total_occupied": total_occupied,
                    "utilization_rate": round(total_occupied / total_capacity * 100, 2) if total_capacity else 0.0,
                },
            }

        finally:
            cursor.close()
            conn.close()

    def get_recent_orders(self, user_id: int, limit: int = 10) -> List[Dict]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT
                    o.id, o.order_number, o.status, o.payment_status, o.total_amount, o.created_at,
                    c.name as customer_name,
                    c.email as customer_email,
                    (SELECT COUNT(*) FROM order_items oi WHERE oi.order_id = o.id) as item_count
                FROM orders o
                LEFT JOIN customers c ON o.customer_id = c.id
                WHERE o.user_id = %s
                ORDER BY o.created_at DESC
                LIMIT %s
            """, (user_id, limit))
            return [_floats(row, 'total_amount') for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def get_top_customers(self, user_id: int, limit: int = 10) -> List[Dict]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id, name, email, segment, total_orders, total_revenue,
                       CASE WHEN total_orders > 0 THEN total_revenue / total_orders ELSE 0 END
                           as average_order_value
                FROM customers
                WHERE user_id = %s
                ORDER BY total_revenue DESC, total_orders DESC
                LIMIT %s
            """, (user_id, limit))
            return [_floats(row, 'total_revenue', 'average_order_value') for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def get_revenue_chart(self, user_id: int, period: str = "30days") -> List[Dict]:
        """Revenue per day (7days / 30days) or per month (12months)"""
        interval, unit = REVENUE_PERIODS.get(period, REVENUE_PERIODS["30days"])

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT
                    DATE_TRUNC('{unit}', created_at)::date as date,
                    COUNT(*) as order_count,
                    COALESCE(SUM(total_amount), 0) as revenue,
                    COALESCE(AVG(total_amount), 0) as avg_order_value
                FROM orders
                WHERE user_id = %s
                  AND created_at >= NOW() - INTERVAL '{interval}'
                  AND status NOT IN ('cancelled', 'returned')
                GROUP BY 1
                ORDER BY 1
            """, (user_id,))
            return [_floats(row, 'revenue', 'avg_order_value') for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def get_order_status_distribution(self, user_id: int) -> List[Dict]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT status, COUNT(*) as count, COALESCE(SUM(total_amount), 0) as total_amount
                FROM orders
                WHERE user_id = %s
                GROUP BY status
                ORDER BY count DESC
            """, (user_id,))
            return [_floats(row, 'total_amount') for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def get_product_category_distribution(self, user_id: int) -> List[Dict]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT category, COUNT(*) as product_count, COALESCE(SUM(stock), 0) as total_stock,
                       COALESCE(SUM(stock * price), 0) as inventory_value
                FROM products
                WHERE user_id = %s
                GROUP BY category
                ORDER BY inventory_value DESC
            """, (user_id,))
            rows = []
            for row in cursor.fetchall():
                item = _floats(row, 'inventory_value')
                item['total_stock'] = int(item['total_stock'])
                rows.append(item)
            return rows

        finally:
            cursor.close()
            conn.close()

    def get_customer_segment_distribution(self, user_id: int) -> List[Dict]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT segment, COUNT(*) as customer_count,
                       COALESCE(SUM(total_revenue), 0) as total_revenue,
                       COALESCE(AVG(total_revenue), 0) as avg_revenue_per_customer
                FROM customers
                WHERE user_id = %s
                GROUP BY segment
                ORDER BY total_revenue DESC
            """, (user_id,))
            return [_floats(row, 'total_revenue', 'avg_revenue_per_customer') for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def get_warehouse_utilization(self, user_id: int) -> List[Dict]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id, name, code, city, status, capacity, occupied,
                       CASE WHEN capacity > 0
                            THEN ROUND(occupied::numeric / capacity * 100, 2)
                            ELSE 0 END as utilization_percentage,
                       (capacity - occupied) as available_space
                FROM warehouses
                WHERE user_id = %s
                ORDER BY utilization_percentage DESC, name
            """, (user_id,))
            return [_floats(row, 'utilization_percentage') for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()
