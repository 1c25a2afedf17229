"""
Seed demo users and the default role permissions.

Creates (or leaves untouched, when the e-mail already exists) the confirmed
demo accounts used by the frontend:
- Admin Principal  admin@nexus.com     ADMIN
- Carlos Gerente   gerente@nexus.com   MANAGER
- Ana Vendedora    vendedor@nexus.com  SELLER

and writes the built-in permission set of every role to `role_permissions`.
"""

import asyncio
import sys
from pathlib import Path
from uuid import uuid4

# Add parent directory to path so we can import from repositories
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.roles import DEFAULT_PERMISSIONS, Role
from domain.time import utc_now
from domain.user import User
from repositories.permission_repository import SupabasePermissionStore
from repositories.user_repository import SupabaseUserStore


DEMO_USERS = [
    ("Admin Principal", "admin@nexus.com", Role.ADMIN),
    ("Carlos Gerente", "gerente@nexus.com", Role.MANAGER),
    ("Ana Vendedora", "vendedor@nexus.com", Role.SELLER),
]


async def seed_demo_data():
    users = SupabaseUserStore()
    permissions = SupabasePermissionStore()

    for name, email, role in DEMO_USERS:
        existing = await users.find_by_email(email)
        if existing is not None:
            print(f"Demo user already exists: {email} ({existing.id})")
            continue

        user = User(
            id=str(uuid4()),
            name=name,
            email=email,
            role=role,
            confirmed=True,
            created_at=utc_now(),
        )
        await users.create(user)
        print(f"[SUCCESS] Created {role.value.lower()} {name}")
        print(f"  User ID: {user.id}")
        print(f"  Email: {email}")

    for role, granted in DEFAULT_PERMISSIONS.items():
        await permissions.save(role, sorted(granted, key=lambda p: p.value))
        print(f"[SUCCESS] Permissions for {role.value}: {', '.join(sorted(p.value for p in granted))}")


if __name__ == "__main__":
    asyncio.run(seed_demo_data())
