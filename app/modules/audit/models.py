# Supabase table: permission_audit_log
# This file documents the expected database schema
# Rows are appended by apply_permission_changes and log_permission_events; never updated or deleted

"""
Expected Supabase table structure:

permission_audit_log:
- id: uuid (primary key)
- event_type: text (not null) - grant, revoke, transfer, policy_change,
  invitation_accept, request_approve, request_deny
- actor_type: text (not null) - client, professional, admin, system
- actor_id: uuid (not null)
- target_client_id: uuid (nullable)
- target_relationship_id: uuid (nullable)
- target_professional_id: uuid (nullable)
- permission_slug: text (nullable)
- previous_state: jsonb (nullable)
- new_state: jsonb (nullable)
- reason: text (nullable) - required, at least 10 characters, when actor_type = 'admin'
- metadata: jsonb (default: '{}')
- created_at: timestamp (default: now())
"""
