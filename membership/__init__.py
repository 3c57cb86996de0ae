"""Membership site authentication, session and approval backend."""
