"""
Audit Repository - append-only trail of changes and sign-in events
"""
import json
import logging
from datetime import date
from typing import List, Optional, Tuple, Dict, Any

import psycopg2
from psycopg2.extras import Json

from app.domain.audit import AuditEntry
from app.core.database import get_db_connection_dict

logger = logging.getLogger(__name__)

AUDIT_COLUMNS = """
    a.id, a.user_id, u.email as user_email,
    NULLIF(TRIM(CONCAT(u.first_name, ' ', u.last_name)), '') as user_name,
    a.action, a.entity_type, a.entity_id, a.old_values, a.new_values,
    a.description, a.details, a.ip_address, a.user_agent, a.created_at
"""


def _json(value: Optional[Dict[str, Any]]) -> Optional[Json]:
    # Dates and Decimals in snapshots are stored as strings
    if value is None:
        return None
    return Json(value, dumps=lambda obj: json.dumps(obj, default=str))


class AuditRepository:
    """Writes and queries the audit_logs table"""

    @staticmethod
    def _map_row_to_entry(row: dict) -> AuditEntry:
        return AuditEntry(
            id=row['id'],
            user_id=row.get('user_id'),
            user_email=row.get('user_email'),
            user_name=row.get('user_name'),
            action=row['action'],
            entity_type=row['entity_type'],
            entity_id=row.get('entity_id'),
            old_values=row.get('old_values'),
            new_values=row.get('new_values'),
            description=row.get('description'),
            details=row.get('details'),
            ip_address=row.get('ip_address'),
            user_agent=row.get('user_agent'),
            created_at=row.get('created_at')
        )

    def log(
        self,
        action: str,
        entity_type: str,
        entity_id=None,
        user_id: Optional[int] = None,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        description: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> Optional[int]:
        """
        Append one entry.

        The action being audited has already been committed, so a database
        error here is logged and None is returned instead of failing the request.
        """
        try:
            conn = get_db_connection_dict()
        except psycopg2.Error as e:
            logger.error(f"Audit entry {action} {entity_type} #{entity_id} not recorded: {e}")
            return None

        cursor = conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO audit_logs (
                    user_id, action, entity_type, entity_id,
                    old_values, new_values, description, details,
                    ip_address, user_agent, created_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, NOW())
                RETURNING id
            """, (
                user_id, action, entity_type,
                str(entity_id) if entity_id is not None else None,
                _json(old_values), _json(new_values), description, _json(details),
                ip_address, user_agent
            ))
            entry_id = cursor.fetchone()['id']
            conn.commit()
            return entry_id

        except psycopg2.Error as e:
            conn.rollback()
            logger.error(f"Audit entry {action} {entity_type} #{entity_id} not recorded: {e}")
            return None
        finally:
            cursor.close()
            conn.close()

    def find_all(
        self,
        user_id: Optional[int] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        action: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        days: Optional[int] = None,
        limit: int = 50,
        offset: int = 0
    ) -> Tuple[List[AuditEntry], int]:
        """Newest first; end_date is inclusive of the whole day"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            conditions = []
            params: list = []

            if user_id is not None:
                conditions.append("a.user_id = %s")
                params.append(user_id)

            if entity_type:
                conditions.append("a.entity_type = %s")
                params.append(entity_type)

            if entity_id is not None:
                conditions.append("a.entity_id = %s")
                params.append(str(entity_id))

            if action:
                conditions.append("a.action = %s")
                params.append(action)

            if start_date:
                conditions.append("a.created_at >= %s")
                params.append(start_date)

            if end_date:
                conditions.append("a.created_at < %s::date + INTERVAL '1 day'")
                params.append(end_date)

            if days:
                conditions.append("a.created_at >= NOW() - make_interval(days => %s)")
                params.append(days)

            where_clause = " AND ".join(conditions) if conditions else "1=1"

            cursor.execute(f"SELECT COUNT(*) as total FROM audit_logs a WHERE {where_clause}", params)
            total = cursor.fetchone()['total']

            cursor.execute(f"""
                SELECT {AUDIT_COLUMNS}
                FROM audit_logs a
                LEFT JOIN users u ON a.user_id = u.id
                WHERE {where_clause}
                ORDER BY a.created_at DESC, a.id DESC
                LIMIT %s OFFSET %s
            """, params + [limit, offset])

            return [self._map_row_to_entry(row) for row in cursor.fetchall()], total

        finally:
            cursor.close()
            conn.close()

    def get_stats(self, days: int = 30) -> Dict:
        """Entry counts per action over the last `days` days"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT
                    COUNT(*) as total_entries,
                    COUNT(DISTINCT user_id) as unique_users,
                    COUNT(DISTINCT entity_type) as entity_types,
                    COUNT(*) FILTER (WHERE action = 'CREATE') as creates,
                    COUNT(*) FILTER (WHERE action = 'UPDATE') as updates,
                    COUNT(*) FILTER (WHERE action = 'DELETE') as deletes,
                    COUNT(*) FILTER (WHERE action = 'LOGIN') as logins,
                    COUNT(*) FILTER (WHERE action = 'LOGOUT') as logouts,
                    COUNT(*) FILTER (WHERE action = 'EXPORT') as exports
                FROM audit_logs
                WHERE created_at >= NOW() - make_interval(days => %s)
            """, (days,))
            stats = dict(cursor.fetchone())

            cursor.execute("""
                SELECT entity_type, COUNT(*) as count
                FROM audit_logs
                WHERE created_at >= NOW() - make_interval(days => %s)
                GROUP BY entity_type
                ORDER BY count DESC
            """, (days,))
            stats['by_entity'] = {row['entity_type']: row['count'] for row in cursor.fetchall()}
            stats['days'] = days

            return stats

        finally:
            cursor.close()
            conn.close()

    def delete_older_than(self, days_to_keep: int) -> int:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                DELETE FROM audit_logs
                WHERE created_at < NOW() - make_interval(days => %s)
            """, (days_to_keep,))
            deleted = cursor.rowcount
            conn.commit()
            logger.info(f"Removed {deleted} audit entries older than {days_to_keep} days")
            return deleted

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()
