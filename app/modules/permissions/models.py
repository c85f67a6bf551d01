# Supabase table: permission_definitions
# This file documents the expected database schema
# Actual operations are handled via PermissionStore (app/database/permission_store.py)

"""
Expected Supabase table structure:

permission_definitions:
- id: uuid (primary key)
- slug: text (not null, unique) - e.g., "view_nutrition", "set_nutrition_targets"
- display_name: text (not null)
- description: text (nullable)
- category: text (not null) - nutrition, workouts, weight, photos, checkins, fasting, profile
- permission_type: text (not null) - "read" or "write"
- is_exclusive: boolean (default: false) - at most one active holder per client
- is_enabled: boolean (default: true) - disabled slugs cannot be granted
- sort_order: integer (default: 0)
- created_at: timestamp (default: now())

Rows are seeded from app/config/permissions_config.py by app/scripts/seed_permission_definitions.py.
"""
