# Supabase table: permission_requests
# This file documents the expected database schema
# Actual operations are handled via PermissionStore (app/database/permission_store.py)

"""
Expected Supabase table structure:

permission_requests:
- id: uuid (primary key)
- relationship_id: uuid (foreign key to professional_client_relationships.id, not null)
- client_id: uuid (foreign key to profiles.id, not null)
- permission_slug: text (foreign key to permission_definitions.slug, not null)
- status: text (not null) - "pending", "approved", "denied"
- requested_at: timestamp (default: now())
- responded_at: timestamp (nullable)
- message: text (nullable)
- unique (relationship_id, permission_slug) where status = 'pending'
"""
