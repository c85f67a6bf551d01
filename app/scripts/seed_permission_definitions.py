"""
Seed Permission Definitions Script
This script upserts the permission_definitions table from the config.
Can be run manually or as part of a deploy job.

Existing rows keep their is_exclusive / is_enabled flags unless --reset-policy is given,
so exclusivity changes made by admins survive a re-seed.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from app.config.permissions_config import PERMISSION_CATALOG
from app.database.supabase_client import get_service_supabase
from postgrest.exceptions import APIError
from supabase import Client
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

POLICY_FIELDS = ("is_exclusive", "is_enabled")


def seed_permission_definitions(supabase: Client, reset_policy: bool = False) -> dict:
    """Seed permission definitions from config"""
    logger.info("Seeding permission definitions...")

    created_count = 0
    updated_count = 0
    failed = []

    for perm in PERMISSION_CATALOG:
        try:
            existing = supabase.table("permission_definitions")\
                .select("id")\
                .eq("slug", perm["slug"])\
                .execute()

            if existing.data:
                update_data = {k: v for k, v in perm.items() if k != "slug"}
                if not reset_policy:
                    for field in POLICY_FIELDS:
                        update_data.pop(field, None)
                supabase.table("permission_definitions")\
                    .update(update_data)\
                    .eq("slug", perm["slug"])\
                    .execute()
                updated_count += 1
                logger.debug(f"Updated permission: {perm['slug']}")
            else:
                supabase.table("permission_definitions").insert(perm).execute()
                created_count += 1
                logger.debug(f"Created permission: {perm['slug']}")
        except APIError as e:
            logger.error(f"Error processing permission {perm['slug']}: {e.message}")
            failed.append(perm["slug"])

    logger.info(f"Permission definitions seeded: {created_count} created, {updated_count} updated")
    return {"created": created_count, "updated": updated_count, "failed": failed}


def main():
    """Main function to seed permission definitions"""
    parser = argparse.ArgumentParser(description="Seed the permission catalog")
    parser.add_argument(
        "--reset-policy",
        action="store_true",
        help="Overwrite is_exclusive/is_enabled on existing rows with the configured values"
    )
    args = parser.parse_args()

    supabase = get_service_supabase()
    logger.info("Starting permission definitions seeding...")
    result = seed_permission_definitions(supabase, reset_policy=args.reset_policy)
    if result["failed"]:
        logger.error(f"Seeding finished with failures: {', '.join(result['failed'])}")
        sys.exit(1)
    logger.info("Seeding completed successfully!")


if __name__ == "__main__":
    main()
