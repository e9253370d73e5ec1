"""Database initialisation: create tables and seed default rows.

Mirrors what the marketplace backend did on boot: a default admin
account with id 1 and a default settings row, each created only when
missing.
"""

import logging

from passlib.context import CryptContext

from marketplace_backup.adapters.base import DatabaseClient
from marketplace_backup.config.models import SeedSettings

logger = logging.getLogger(__name__)

PWD_CONTEXT = CryptContext(schemes=["bcrypt"], deprecated="auto")

ADMIN_USER_ID = 1


def hash_password(password: str) -> str:
    return PWD_CONTEXT.hash(password)


async def initialize_database(adapter: DatabaseClient, seed: SeedSettings) -> dict[str, bool]:
    """Create missing tables, then the default admin and settings rows.

    Returns:
        ``{"admin_created": bool, "settings_created": bool}``
    """
    await adapter.create_tables()

    admin_exists = await adapter.select("users", "id", filters={"id": ADMIN_USER_ID})
    settings_exist = await adapter.select("settings", "id")

    created = {"admin_created": not admin_exists, "settings_created": not settings_exist}
    if not any(created.values()):
        return created

    tx = await adapter.begin()
    try:
        if created["admin_created"]:
            await tx.bulk_insert(
                "users",
                [
                    {
                        "id": ADMIN_USER_ID,
                        "username": seed.admin_username,
                        "password": hash_password(seed.admin_password),
                        "role": "admin",
                    }
                ],
            )
            await tx.reset_sequence("users")
            logger.info(f"Default admin account '{seed.admin_username}' created")

        if created["settings_created"]:
            await tx.bulk_insert(
                "settings",
                [
                    {
                        "payment_info": seed.payment_info,
                        "price_coefficient": seed.price_coefficient,
                        "discount_rules": "[]",
                        "show_discount_on_products": False,
                    }
                ],
            )
            logger.info("Default settings created")

        await tx.commit()
    except Exception:
        await tx.rollback()
        raise
    finally:
        await tx.close()

    return created
