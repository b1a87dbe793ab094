"""
Product Repository - Data Access Layer for Products

Handles all database queries for products and stock movements and returns
Product domain models.
"""
import logging
from typing import List, Optional, Tuple, Dict

from app.domain.product import Product, ProductCreate, ProductUpdate, StockUpdate
from app.core.database import get_db_connection_dict
from app.core.errors import BusinessRuleError, ValidationFailed

logger = logging.getLogger(__name__)

PRODUCT_COLUMNS = """
    id, user_id, name, sku, category, description, price, cost, stock,
    reorder_level, unit, supplier, image_url, status, created_at, updated_at
"""

SORTABLE_FIELDS = ("name", "sku", "category", "price", "stock", "created_at", "updated_at")

UPDATABLE_FIELDS = (
    "name", "sku", "category", "description", "price", "cost",
    "reorder_level", "unit", "supplier", "image_url", "status",
)


class ProductRepository:
    """
    Repository for Product data access

    All SQL queries for products are centralized here.
    Returns Product domain models, not raw dictionaries.
    """

    @staticmethod
    def _map_row_to_product(row: dict) -> Product:
        return Product(
            id=row['id'],
            user_id=row.get('user_id'),
            name=row['name'],
            sku=row['sku'],
            category=row['category'],
            description=row.get('description'),
            price=row['price'],
            cost=row.get('cost'),
            stock=row['stock'],
            reorder_level=row.get('reorder_level', 10),
            unit=row.get('unit') or "pieces",
            supplier=row.get('supplier'),
            image_url=row.get('image_url'),
            status=row.get('status') or "active",
            created_at=row.get('created_at'),
            updated_at=row.get('updated_at')
        )

    def find_by_id(self, product_id: int, user_id: int) -> Optional[Product]:
        """
        Find product by ID

        Returns:
            Product or None if not found
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {PRODUCT_COLUMNS}
                FROM products
                WHERE id = %s AND user_id = %s
            """, (product_id, user_id))

            row = cursor.fetchone()
            if not row:
                return None

            return self._map_row_to_product(row)

        finally:
            cursor.close()
            conn.close()

    def sku_exists(self, sku: str, user_id: int, exclude_id: Optional[int] = None) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id FROM products
                WHERE user_id = %s AND sku = %s AND (%s IS NULL OR id <> %s)
            """, (user_id, sku, exclude_id, exclude_id))
            return cursor.fetchone() is not None

        finally:
            cursor.close()
            conn.close()

    def find_all(
        self,
        user_id: int,
        category: Optional[str] = None,
        status: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        in_stock: Optional[bool] = None,
        low_stock: Optional[bool] = None,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        order: str = "DESC",
        limit: int = 10,
        offset: int = 0
    ) -> Tuple[List[Product], int]:
        """
        Find products with filters

        Args:
            category: Filter by category
            status: Filter by catalog status
            min_price / max_price: Price range (inclusive)
            in_stock: True for stock > 0, False for stock = 0
            low_stock: True for stock <= reorder_level
            search: Search in name, SKU or description

        Returns:
            Tuple of (list of products, total count)
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            conditions = ["user_id = %s"]
            params: list = [user_id]

            if category:
                conditions.append("category = %s")
                params.append(category)

            if status:
                conditions.append("status = %s")
                params.append(status)

            if min_price is not None:
                conditions.append("price >= %s")
                params.append(min_price)

            if max_price is not None:
                conditions.append("price <= %s")
                params.append(max_price)

            if in_stock is True:
                conditions.append("stock > 0")
            elif in_stock is False:
                conditions.append("stock = 0")

            if low_stock:
                conditions.append("stock <= reorder_level")

            if search:
                conditions.append("(name ILIKE %s OR sku ILIKE %s OR description ILIKE %s)")
                search_term = f"%{search}%"
                params.extend([search_term, search_term, search_term])

            where_clause = " AND ".join(conditions)
            sort_field = sort_by if sort_by in SORTABLE_FIELDS else "created_at"
            direction = "ASC" if order.upper() == "ASC" else "DESC"

            cursor.execute(f"""
                SELECT COUNT(*) as total
                FROM products
                WHERE {where_clause}
            """, params)
            total = cursor.fetchone()['total']

            cursor.execute(f"""
                SELECT {PRODUCT_COLUMNS}
                FROM products
                WHERE {where_clause}
                ORDER BY {sort_field} {direction}, id {direction}
                LIMIT %s OFFSET %s
            """, params + [limit, offset])

            rows = cursor.fetchall()
            products = [self._map_row_to_product(row) for row in rows]

            return products, total

        finally:
            cursor.close()
            conn.close()

    def create(self, user_id: int, data: ProductCreate) -> Product:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                INSERT INTO products (
                    user_id, name, sku, category, description, price, cost, stock,
                    reorder_level, unit, supplier, image_url, status, created_at, updated_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, NOW(), NOW())
                RETURNING {PRODUCT_COLUMNS}
            """, (
                user_id, data.name, data.sku, data.category, data.description,
                data.price, data.cost, data.stock, data.reorder_level, data.unit,
                data.supplier, data.image_url, data.status
            ))
            row = cursor.fetchone()

            if data.stock:
                cursor.execute("""
                    INSERT INTO stock_movements
                    (product_id, user_id, movement_type, quantity, stock_before, stock_after, reason)
                    VALUES (%s, %s, 'add', %s, 0, %s, 'Initial stock')
                """, (row['id'], user_id, data.stock, data.stock))

            conn.commit()
            logger.info(f"Product {data.sku} created (id={row['id']}) for user {user_id}")
            return self._map_row_to_product(row)

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def update(self, product_id: int, user_id: int, data: ProductUpdate) -> Optional[Product]:
        """Partial update; cost <= price is checked against the merged values"""
        changes = data.model_dump(exclude_unset=True)

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id, price, cost FROM products
                WHERE id = %s AND user_id = %s
                FOR UPDATE
            """, (product_id, user_id))
            current = cursor.fetchone()

            if not current:
                conn.rollback()
                return None

            price = changes.get('price', current['price'])
            cost = changes.get('cost', current['cost'])
            if cost is not None and price is not None and cost > price:
                raise ValidationFailed(
                    "Cost cannot be greater than price",
                    errors=[{"field": "cost", "message": "Cost cannot be greater than price"}]
                )

            update_fields = []
            values = []
            for field in UPDATABLE_FIELDS:
                if field in changes:
                    update_fields.append(f"{field} = %s")
                    values.append(changes[field])

            if not update_fields:
                conn.rollback()
                return self.find_by_id(product_id, user_id)

            update_fields.append("updated_at = NOW()")
            values.extend([product_id, user_id])

            cursor.execute(f"""
                UPDATE products
                SET {', '.join(update_fields)}
                WHERE id = %s AND user_id = %s
                RETURNING {PRODUCT_COLUMNS}
            """, values)
            row = cursor.fetchone()

            conn.commit()
            return self._map_row_to_product(row)

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def adjust_stock(self, product_id: int, user_id: int, adjustment: StockUpdate) -> Optional[Dict]:
        """
        Apply an add/subtract/set adjustment and record the movement.

        Returns:
            {"product": Product, "movement": dict} or None if the product doesn't exist

        Raises:
            BusinessRuleError: if the resulting stock would be negative
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id, stock FROM products
                WHERE id = %s AND user_id = %s
                FOR UPDATE
            """, (product_id, user_id))
            current = cursor.fetchone()

            if not current:
                conn.rollback()
                return None

            stock_before = current['stock']
            stock_after = adjustment.apply(stock_before)

            if stock_after < 0:
                raise BusinessRuleError(
                    "Stock cannot be negative",
                    errors=[{"field": "quantity", "message": f"Only {stock_before} units available"}]
                )

            cursor.execute(f"""
                UPDATE products
                SET stock = %s, updated_at = NOW()
                WHERE id = %s
                RETURNING {PRODUCT_COLUMNS}
            """, (stock_after, product_id))
            row = cursor.fetchone()

            cursor.execute("""
                INSERT INTO stock_movements
                (product_id, user_id, movement_type, quantity, stock_before, stock_after, reason)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                RETURNING id, movement_type, quantity, stock_before, stock_after, reason, created_at
            """, (
                product_id, user_id, adjustment.type, stock_after - stock_before,
                stock_before, stock_after, adjustment.reason
            ))
            movement = dict(cursor.fetchone())

            conn.commit()
            logger.info(f"Stock for product {product_id}: {stock_before} -> {stock_after} ({adjustment.type})")

            return {"product": self._map_row_to_product(row), "movement": movement}

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def find_movements(self, product_id: int, user_id: int, limit: int = 50) -> List[Dict]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT sm.id, sm.movement_type, sm.quantity, sm.stock_before,
                       sm.stock_after, sm.reason, sm.order_id, sm.created_at
                FROM stock_movements sm
                JOIN products p ON p.id = sm.product_id
                WHERE sm.product_id = %s AND p.user_id = %s
                ORDER BY sm.created_at DESC, sm.id DESC
                LIMIT %s
            """, (product_id, user_id, limit))
            return [dict(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def delete(self, product_id: int, user_id: int) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                DELETE FROM products
                WHERE id = %s AND user_id = %s
                RETURNING id
            """, (product_id, user_id))
            deleted = cursor.fetchone() is not None
            conn.commit()
            return deleted

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def find_low_stock(self, user_id: int, limit: int = 50) -> List[Dict]:
        """Active products at or below their reorder level, largest shortage first"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id, name, sku, category, stock, reorder_level, price, unit,
                       (reorder_level - stock) as shortage_quantity
                FROM products
                WHERE user_id = %s AND status = 'active' AND stock <= reorder_level
                ORDER BY (reorder_level - stock) DESC, name
                LIMIT %s
            """, (user_id, limit))

            rows = []
            for row in cursor.fetchall():
                item = dict(row)
                item['price'] = float(item['price'])
                rows.append(item)
            return rows

        finally:
            cursor.close()
            conn.close()

    def get_categories(self, user_id: int) -> List[Dict]:
        """Product count, stock and inventory value per category"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT
                    category,
                    COUNT(*) as product_count,
                    COALESCE(SUM(stock), 0) as total_stock,
                    COALESCE(SUM(stock * price), 0) as inventory_value
                FROM products
                WHERE user_id = %s
                GROUP BY category
                ORDER BY category
            """, (user_id,))

            return [
                {
                    'category': row['category'],
                    'product_count': row['product_count'],
                    'total_stock': int(row['total_stock']),
                    'inventory_value': float(row['inventory_value']),
                }
                for row in cursor.fetchall()
            ]

        finally:
            cursor.close()
            conn.close()

    def get_daily_demand(self, product_id: int, user_id: int, days: int = 90) -> List[Dict]:
        """Units sold per day (from order items) over the last N days, zero-filled"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT d::date as day, COALESCE(SUM(oi.quantity), 0) as units
                FROM generate_series(CURRENT_DATE - (%s - 1) * INTERVAL '1 day', CURRENT_DATE, INTERVAL '1 day') d
                LEFT JOIN orders o
                    ON DATE(o.created_at) = d::date
                   AND o.user_id = %s
                   AND o.status NOT IN ('cancelled', 'returned')
                LEFT JOIN order_items oi
                    ON oi.order_id = o.id AND oi.product_id = %s
                GROUP BY d
                ORDER BY d
            """, (days, user_id, product_id))

            return [{'day': row['day'], 'units': int(row['units'])} for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()
