# Supabase table: professional_client_relationships
# This file documents the expected database schema
# Actual operations are handled via PermissionStore (app/database/permission_store.py)

"""
Expected Supabase table structure:

professional_client_relationships:
- id: uuid (primary key)
- professional_id: uuid (foreign key to profiles.id, not null)
- client_id: uuid (foreign key to profiles.id, not null)
- role_type: text (not null) - "nutritionist", "trainer", "coach"
- status: text (not null) - "pending", "active", "ended"
- granted_permissions: text[] (default: '{}') - slugs from permission_definitions
- permissions_version: integer (default: 0) - bumped on every grant set or status write
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)
- GIN index on granted_permissions
- at most one active row per (professional_id, client_id)

Grant sets are only written through the apply_permission_changes RPC, which checks
permissions_version for every row it touches or guards.

profiles:
- id: uuid (primary key, matches auth.users.id)
- display_name: text (nullable)
"""
