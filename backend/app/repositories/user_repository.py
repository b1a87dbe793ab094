"""
User Repository - users, roles and refresh tokens
"""
import logging
from datetime import datetime
from typing import List, Optional, Tuple, Dict

from app.domain.user import User, Role
from app.core.database import get_db_connection_dict

logger = logging.getLogger(__name__)

USER_COLUMNS = """
    id, email, first_name, last_name, phone, role, is_active,
    created_at, updated_at, last_login_at
"""

SORTABLE_FIELDS = ("email", "first_name", "last_name", "role", "created_at", "last_login_at")


class UserRepository:
    """Repository for users, roles and refresh tokens"""

    @staticmethod
    def _map_row_to_user(row: dict) -> User:
        return User(
            id=row['id'],
            email=row['email'],
            first_name=row.get('first_name'),
            last_name=row.get('last_name'),
            phone=row.get('phone'),
            role=row.get('role') or "staff",
            is_active=row.get('is_active', True),
            created_at=row.get('created_at'),
            updated_at=row.get('updated_at'),
            last_login_at=row.get('last_login_at')
        )

    # =========================================================================
    # Users
    # =========================================================================

    def find_by_id(self, user_id: int) -> Optional[User]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"SELECT {USER_COLUMNS} FROM users WHERE id = %s", (user_id,))
            row = cursor.fetchone()
            return self._map_row_to_user(row) if row else None

        finally:
            cursor.close()
            conn.close()

    def find_credentials_by_email(self, email: str) -> Optional[Dict]:
        """Raw row including password_hash, for login only"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {USER_COLUMNS}, password_hash
                FROM users
                WHERE email = %s
            """, (email.lower(),))
            row = cursor.fetchone()
            return dict(row) if row else None

        finally:
            cursor.close()
            conn.close()

    def find_password_hash(self, user_id: int) -> Optional[str]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT password_hash FROM users WHERE id = %s", (user_id,))
            row = cursor.fetchone()
            return row['password_hash'] if row else None

        finally:
            cursor.close()
            conn.close()

    def email_exists(self, email: str, exclude_id: Optional[int] = None) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id FROM users
                WHERE email = %s AND (%s IS NULL OR id <> %s)
            """, (email.lower(), exclude_id, exclude_id))
            return cursor.fetchone() is not None

        finally:
            cursor.close()
            conn.close()

    def find_all(
        self,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        order: str = "DESC",
        limit: int = 10,
        offset: int = 0
    ) -> Tuple[List[User], int]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            conditions = []
            params: list = []

            if role:
                conditions.append("role = %s")
                params.append(role)

            if is_active is not None:
                conditions.append("is_active = %s")
                params.append(is_active)

            if search:
                conditions.append("(email ILIKE %s OR first_name ILIKE %s OR last_name ILIKE %s)")
                search_term = f"%{search}%"
                params.extend([search_term, search_term, search_term])

            where_clause = " AND ".join(conditions) if conditions else "1=1"
            sort_field = sort_by if sort_by in SORTABLE_FIELDS else "created_at"
            direction = "ASC" if order.upper() == "ASC" else "DESC"

            cursor.execute(f"SELECT COUNT(*) as total FROM users WHERE {where_clause}", params)
            total = cursor.fetchone()['total']

            cursor.execute(f"""
                SELECT {USER_COLUMNS}
                FROM users
                WHERE {where_clause}
                ORDER BY {sort_field} {direction} NULLS LAST, id
                LIMIT %s OFFSET %s
            """, params + [limit, offset])

            return [self._map_row_to_user(row) for row in cursor.fetchall()], total

        finally:
            cursor.close()
            conn.close()

    def create(
        self,
        email: str,
        password_hash: str,
        first_name: Optional[str],
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
        role: str = "staff"
    ) -> User:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                INSERT INTO users (email, password_hash, first_name, last_name, phone, role,
                                   is_active, created_at, updated_at)
                VALUES (%s, %s, %s, %s, %s, %s, TRUE, NOW(), NOW())
                RETURNING {USER_COLUMNS}
            """, (email.lower(), password_hash, first_name, last_name, phone, role))
            row = cursor.fetchone()
            conn.commit()
            logger.info(f"User {row['id']} created with role {role}")
            return self._map_row_to_user(row)

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def update(self, user_id: int, changes: Dict) -> Optional[User]:
        """Update any of email, first_name, last_name, phone, role, is_active"""
        update_fields = []
        values = []
        for field in ("email", "first_name", "last_name", "phone", "role", "is_active"):
            if field in changes:
                update_fields.append(f"{field} = %s")
                values.append(changes[field])

        if not update_fields:
            return self.find_by_id(user_id)

        update_fields.append("updated_at = NOW()")
        values.append(user_id)

        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                UPDATE users
                SET {', '.join(update_fields)}
                WHERE id = %s
                RETURNING {USER_COLUMNS}
            """, values)
            row = cursor.fetchone()
            conn.commit()
            return self._map_row_to_user(row) if row else None

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def update_password(self, user_id: int, password_hash: str):
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE users SET password_hash = %s, updated_at = NOW()
                WHERE id = %s
            """, (password_hash, user_id))
            conn.commit()

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def touch_last_login(self, user_id: int):
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("UPDATE users SET last_login_at = NOW() WHERE id = %s", (user_id,))
            conn.commit()

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def delete(self, user_id: int) -> bool:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("DELETE FROM users WHERE id = %s RETURNING id", (user_id,))
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
    # Roles
    # =========================================================================

    def find_roles(self) -> List[Role]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT r.id, r.name, r.description, r.permissions, r.created_at,
                       COUNT(u.id) as user_count
                FROM roles r
                LEFT JOIN users u ON u.role = r.name
                GROUP BY r.id
                ORDER BY r.id
            """)
            return [Role(**row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def find_role_by_name(self, name: str) -> Optional[Role]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT r.id, r.name, r.description, r.permissions, r.created_at,
                       COUNT(u.id) as user_count
                FROM roles r
                LEFT JOIN users u ON u.role = r.name
                WHERE r.name = %s
                GROUP BY r.id
            """, (name,))
            row = cursor.fetchone()
            return Role(**row) if row else None

        finally:
            cursor.close()
            conn.close()

    # =========================================================================
    # Refresh tokens
    # =========================================================================

    def store_refresh_token(self, user_id: int, token_hash: str, expires_at: datetime):
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO refresh_tokens (user_id, token_hash, expires_at)
                VALUES (%s, %s, %s)
            """, (user_id, token_hash, expires_at))
            conn.commit()

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def consume_refresh_token(self, token_hash: str) -> Optional[int]:
        """
        Revoke a live refresh token and return its user id.

        Returns None if the token is unknown, already revoked or expired,
        so a token can be exchanged only once.
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE refresh_tokens
                SET revoked_at = NOW()
                WHERE token_hash = %s AND revoked_at IS NULL AND expires_at > NOW()
                RETURNING user_id
            """, (token_hash,))
            row = cursor.fetchone()
            conn.commit()
            return row['user_id'] if row else None

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()

    def revoke_refresh_tokens(self, user_id: int, token_hash: Optional[str] = None) -> int:
        """Revoke one token (when a hash is given) or every live token of the user"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            if token_hash:
                cursor.execute("""
                    UPDATE refresh_tokens SET revoked_at = NOW()
                    WHERE user_id = %s AND token_hash = %s AND revoked_at IS NULL
                """, (user_id, token_hash))
            else:
                cursor.execute("""
                    UPDATE refresh_tokens SET revoked_at = NOW()
                    WHERE user_id = %s AND revoked_at IS NULL
                """, (user_id,))
            revoked = cursor.rowcount
            conn.commit()
            return revoked

        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()
            conn.close()
