"""
Warehouse Repository - Data Access Layer for Warehouses

Handles all database queries for warehouses and their amenities and
returns Warehouse domain models. Every query is scoped to the owning user.
"""
import logging
from typing import List, Optional, Tuple, Dict

from app.domain.warehouse import Warehouse, WarehouseCreate, WarehouseUpdate
from app.core.database import get_db_connection_dict
from app.core.errors import ValidationFailed

logger = logging.getLogger(__name__)

WAREHOUSE_COLUMNS = """
    w.id, w.user_id, w.name, w.code, w.street, w.city, w.state, w.pincode,
    w.country, w.latitude, w.longitude, w.capacity, w.occupied, w.status,
    w.is_verified, w.operating_hours, w.contact_person, w.contact_phone,
    w.contact_email, w.cost_per_sqft, w.created_at, w.updated_at,
    COALESCE(
        (SELECT array_agg(wa.amenity ORDER BY wa.amenity)
         FROM warehouse_amenities wa WHERE wa.warehouse_id = w.id),
        '{}'
    ) AS amenities
"""

SORTABLE_FIELDS = ("name", "code", "city", "capacity", "occupied", "created_at", "status")

# Columns a WarehouseUpdate may touch directly
UPDATABLE_FIELDS = (
    "name", "code", "street", "city", "state", "pincode", "country",
    "latitude", "longitude", "capacity", "occupied", "status", "is_verified",
    "operating_hours", "contact_person", "contact_phone", "contact_email",
    "cost_per_sqft",
)


class WarehouseRepository:
    """
    Repository for Warehouse data access

    All SQL queries for warehouses are centralized here.
    """

    @staticmethod
    def _map_row_to_warehouse(row: dict) -> Warehouse:
        return Warehouse(
            id=row['id'],
            user_id=row.get('user_id'),
            name=row['name'],
            code=row['code'],
            street=row.get('street'),
            city=row.get('city'),
            state=row.get('state'),
            pincode=row.get('pincode'),
            country=row.get('country') or "India",
            latitude=row.get('latitude'),
            longitude=row.get('longitude'),
            capacity=row['capacity'],
            occupied=row.get('occupied') or 0,
            status=row.get('status') or "active",
            is_verified=bool(row.get('is_verified')),
            operating_hours=row.get('operating_hours'),
            contact_person=row.get('contact_person'),
            contact_phone=row.get('contact_phone'),
            contact_email=row.get('contact_email'),
            cost_per_sqft=row.get('cost_per_sqft'),
            amenities=list(row.get('amenities') or []),
            created_at=row.get('created_at'),
            updated_at=row.get('updated_at')
        )

    def find_by_id(self, warehouse_id: int, user_id: int) -> Optional[Warehouse]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {WAREHOUSE_COLUMNS}
                FROM warehouses w
                WHERE w.id = %s AND w.user_id = %s
            """, (warehouse_id, user_id))

            row = cursor.fetchone()
            if not row:
                return None

            return self._map_row_to_warehouse(row)

        finally:
            cursor.close()
            conn.close()

    def code_exists(self, code: str, user_id: int, exclude_id: Optional[int] = None) -> bool:
        """True if another warehouse of this user already uses the code"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            if exclude_id:
                cursor.execute("""
                    SELECT id FROM warehouses
                    WHERE user_id = %s AND code = %s AND id <> %s
                """, (user_id, code, exclude_id))
            else:
                cursor.execute("""
                    SELECT id FROM warehouses
                    WHERE user_id = %s AND code = %s
                """, (user_id, code))

            return cursor.fetchone() is not None

        finally:
            cursor.close()
            conn.close()

    def find_all(
        self,
        user_id: int,
        status: Optional[str] = None,
        is_verified: Optional[bool] = None,
        city: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        order: str = "DESC",
        limit: int = 10,
        offset: int = 0
    ) -> Tuple[List[Warehouse], int]:
        """
        Find warehouses with filters

        Args:
            user_id: Owner of the warehouses
            status: Filter by status
            is_verified: Filter by verification flag
            city: Filter by city (case-insensitive exact match)
            search: Search in name, code, city or state
            sort_by: One of SORTABLE_FIELDS (anything else sorts by created_at)
            order: ASC or DESC
            limit: Maximum results to return
            offset: Number of results to skip

        Returns:
            Tuple of (list of warehouses, total count)
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            conditions = ["w.user_id = %s"]
            params: list = [user_id]

            if status:
                conditions.append("w.status = %s")
                params.append(status)

            if is_verified is not None:
                conditions.append("w.is_verified = %s")
                params.append(is_verified)

            if city:
                conditions.append("LOWER(w.city) = LOWER(%s)")
                params.append(city)

            if search:
                conditions.append(
                    "(w.name ILIKE %s OR w.code ILIKE %s OR w.city ILIKE %s OR w.state ILIKE %s)"
                )
                search_term = f"%{search}%"
                params.extend([search_term] * 4)

            where_clause = " AND ".join(conditions)
            sort_field = sort_by if sort_by in SORTABLE_FIELDS else "created_at"
            direction = "ASC" if order.upper() == "ASC" else "DESC"

            cursor.execute(f"""
                SELECT COUNT(*) as total
                FROM warehouses w
                WHERE {where_clause}
            """, params)
            total = cursor.fetchone()['total']

            cursor.execute(f"""
                SELECT {WAREHOUSE_COLUMNS}
                FROM warehouses w
                WHERE {where_clause}
                ORDER BY w.{sort_field} {direction}, w.id {direction}
                LIMIT %s OFFSET %s
            """, params + [limit, offset])

            rows = cursor.fetchall()
            return [self._map_row_to_warehouse(row) for row in rows], total

        finally:
            cursor.close()
            conn.close()

    def find_active(self, user_id: int) -> List[Warehouse]:
        """Active warehouses, used for proximity search"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {WAREHOUSE_COLUMNS}
                FROM warehouses w
                WHERE w.user_id = %s AND w.status = 'active'
                ORDER BY w.name
            """, (user_id,))

            return [self._map_row_to_warehouse(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def create(self, user_id: int, data: WarehouseCreate) -> Warehouse:
        """Insert a warehouse and its amenities in one transaction"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO warehouses (
                    user_id, name, code, street, city, state, pincode, country,
                    latitude, longitude, capacity, occupied, status, is_verified,
                    operating_hours, contact_person, contact_phone, contact_email,
                    cost_per_sqft, created_at, updated_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s,
                        %s, %s, %s, %s, %s, NOW(), NOW())
                RETURNING id
            """, (
                user_id, data.name, data.code, data.street, data.city, data.state,
                data.pincode, data.country, data.latitude, data.longitude,
                data.capacity, data.occupied, data.status, data.is_verified,
                data.operating_hours, data.contact_person, data.contact_phone,
                data.contact_email, data.cost_per_sqft
            ))
            warehouse_id = cursor.fetchone()['id']

            self._insert_amenities(cursor, warehouse_id, data.amenities)

            conn.commit()
            logger.info(f"Warehouse {data.code} created (id={warehouse_id}) for user {user_id}")

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

        return self.find_by_id(warehouse_id, user_id)

    def update(self, warehouse_id: int, user_id: int, data: WarehouseUpdate) -> Optional[Warehouse]:
        """
        Apply a partial update.

        The stored row is locked and merged with the patch so the
        occupied <= capacity rule holds for the final values.
        """
        changes = data.model_dump(exclude_unset=True)
        amenities = changes.pop('amenities', None)

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id, capacity, occupied, latitude, longitude
                FROM warehouses
                WHERE id = %s AND user_id = %s
                FOR UPDATE
            """, (warehouse_id, user_id))
            current = cursor.fetchone()

            if not current:
                conn.rollback()
                return None

            capacity = changes.get('capacity', current['capacity'])
            occupied = changes.get('occupied', current['occupied'])
            if occupied > capacity:
                raise ValidationFailed(
                    "Occupied space cannot exceed capacity",
                    errors=[{"field": "occupied", "message": f"Must be at most {capacity}"}]
                )

            latitude = changes.get('latitude', current['latitude'])
            longitude = changes.get('longitude', current['longitude'])
            if (latitude is None) != (longitude is None):
                raise ValidationFailed(
                    "Latitude and longitude must be provided together",
                    errors=[{"field": "latitude", "message": "Latitude and longitude must be provided together"}]
                )

            update_fields = []
            values = []
            for field in UPDATABLE_FIELDS:
                if field in changes:
                    update_fields.append(f"{field} = %s")
                    values.append(changes[field])

            if update_fields:
                update_fields.append("updated_at = NOW()")
                values.extend([warehouse_id, user_id])
                cursor.execute(f"""
                    UPDATE warehouses
                    SET {', '.join(update_fields)}
                    WHERE id = %s AND user_id = %s
                """, values)

            if amenities is not None:
                cursor.execute("DELETE FROM warehouse_amenities WHERE warehouse_id = %s", (warehouse_id,))
                self._insert_amenities(cursor, warehouse_id, amenities)

            conn.commit()

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

        return self.find_by_id(warehouse_id, user_id)

    def update_capacity(
        self,
        warehouse_id: int,
        user_id: int,
        capacity: Optional[int] = None,
        occupied: Optional[int] = None
    ) -> Optional[Warehouse]:
        patch = {}
        if capacity is not None:
            patch['capacity'] = capacity
        if occupied is not None:
            patch['occupied'] = occupied
        return self.update(warehouse_id, user_id, WarehouseUpdate(**patch))

    def update_status(self, warehouse_id: int, user_id: int, status: str) -> Optional[Warehouse]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE warehouses
                SET status = %s, updated_at = NOW()
                WHERE id = %s AND user_id = %s
                RETURNING id
            """, (status, warehouse_id, user_id))
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
        return self.find_by_id(warehouse_id, user_id)

    def replace_amenities(self, warehouse_id: int, user_id: int, amenities: List[str]) -> Optional[List[str]]:
        """Replace the full amenity set; returns the stored list or None if not found"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id FROM warehouses
                WHERE id = %s AND user_id = %s
                FOR UPDATE
            """, (warehouse_id, user_id))
            if not cursor.fetchone():
                conn.rollback()
                return None

            cursor.execute("DELETE FROM warehouse_amenities WHERE warehouse_id = %s", (warehouse_id,))
            self._insert_amenities(cursor, warehouse_id, amenities)
            cursor.execute("UPDATE warehouses SET updated_at = NOW() WHERE id = %s", (warehouse_id,))

            conn.commit()
            return sorted(amenities)

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def delete(self, warehouse_id: int, user_id: int) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                DELETE FROM warehouses
                WHERE id = %s AND user_id = %s
                RETURNING id
            """, (warehouse_id, user_id))
            deleted = cursor.fetchone() is not None
            conn.commit()
            return deleted

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def get_stats(self, user_id: int) -> Dict:
        """Totals and utilization across the user's warehouses"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT
                    COUNT(*) as total_warehouses,
                    COUNT(*) FILTER (WHERE status = 'active') as active_warehouses,
                    COUNT(*) FILTER (WHERE status = 'inactive') as inactive_warehouses,
                    COUNT(*) FILTER (WHERE status = 'maintenance') as maintenance_warehouses,
                    COUNT(*) FILTER (WHERE is_verified) as verified_warehouses,
                    COALESCE(SUM(capacity), 0) as total_capacity,
                    COALESCE(SUM(occupied), 0) as total_occupied
                FROM warehouses
                WHERE user_id = %s
            """, (user_id,))
            stats = dict(cursor.fetchone())

            total_capacity = int(stats['total_capacity'])
            total_occupied = int(stats['total_occupied'])
            stats['total_capacity'] = total_capacity
            stats['total_occupied'] = total_occupied
            stats['available_space'] = total_capacity - total_occupied
            stats['utilization_rate'] = (
                round(total_occupied / total_capacity * 100, 2) if total_capacity else 0.0
            )
            return stats

        finally:
            cursor.close()
            conn.close()

    @staticmethod
    def _insert_amenities(cursor, warehouse_id: int, amenities: List[str]):
        for amenity in amenities or []:
            cursor.execute("""
                INSERT INTO warehouse_amenities (warehouse_id, amenity)
                VALUES (%s, %s)
                ON CONFLICT (warehouse_id, amenity) DO NOTHING
            """, (warehouse_id, amenity))
