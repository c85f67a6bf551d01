# Supabase tables: invitations, invitation_permissions
# This file documents the expected database schema
# Actual operations are handled via PermissionStore (app/database/permission_store.py)

"""
Expected Supabase table structure:

invitations:
- id: uuid (primary key)
- token: text (not null, unique) - URL-safe random token, the only credential for the public fetch
- professional_id: uuid (foreign key to profiles.id, not null)
- client_email: text (not null)
- role_type: text (not null) - "nutritionist", "trainer", "coach"
- status: text (not null) - "pending", "accepted", "cancelled", "expired"
- created_at: timestamp (default: now())
- expires_at: timestamp (default: now() + 7 days)
- accepted_at: timestamp (nullable)

invitation_permissions:
- id: uuid (primary key)
- invitation_id: uuid (foreign key to invitations.id, not null)
- permission_slug: text (foreign key to permission_definitions.slug, not null)
- requested_at: timestamp (default: now())
- unique constraint on (invitation_id, permission_slug)
"""
