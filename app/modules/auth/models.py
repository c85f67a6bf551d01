# Supabase Auth
# This module uses Supabase's built-in authentication system
# No custom tables are required: users live in auth.users and sign-in happens client-side

"""
Supabase Auth provides:
- auth.get_user() - Get current user from JWT token (the only call this backend makes)

Platform admins carry {"type": "admin"} in app_metadata, which only the service role can set.
Display names for professionals are read from the public.profiles table (id, display_name).
"""
