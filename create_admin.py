import sys
import uuid
from datetime import datetime, timezone
from urllib.parse import urlparse

import psycopg2

from agri_rental.core.security import hash_password
from agri_rental.core.config import settings


def connection_params(database_url: str) -> dict:
    db_url = urlparse(database_url.replace("postgresql+asyncpg://", "postgresql://"))
    return dict(
        host=db_url.hostname or "localhost",
        port=db_url.port or 5432,
        user=db_url.username or "postgres",
        password=db_url.password or "postgres",
        database=db_url.path.lstrip("/") or "postgres",
    )


def create_admin_user(phone: str, password: str, name: str | None = None) -> bool:
    try:
        conn = psycopg2.connect(**connection_params(settings.DATABASE_URL))
        cursor = conn.cursor()

        cursor.execute("SELECT id FROM users WHERE phone = %s", (phone,))
        existing_user = cursor.fetchone()

        if existing_user:
            print(f"Error: User with phone '{phone}' already exists")
            cursor.close()
            conn.close()
            return False

        user_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        cursor.execute(
            "INSERT INTO users (id, phone, name, password_hash, role, created_at, updated_at) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s)",
            (user_id, phone, name, hash_password(password), "ADMIN", now, now)
        )
        conn.commit()

        print(f"Admin user '{phone}' created successfully")
        print(f"User ID: {user_id}")
        print("Role: ADMIN")

        cursor.close()
        conn.close()
        return True

    except Exception as e:
        print(f"Error creating admin user: {str(e)}")
        return False


def main():
    if len(sys.argv) < 3:
        print("Usage: python create_admin.py <phone> <password> [name]")
        sys.exit(1)

    phone = sys.argv[1]
    password = sys.argv[2]
    name = sys.argv[3] if len(sys.argv) > 3 else None

    if not phone or not password:
        print("Error: phone and password cannot be empty")
        sys.exit(1)

    success = create_admin_user(phone, password, name)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
