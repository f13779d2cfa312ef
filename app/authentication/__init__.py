"""
Authentication application.

Holds the custom email-based User model shared by mentees, mentors and
administrators. Token issuance lives in the separate auth service; this
project only validates JWTs (see REST_FRAMEWORK settings).

Usage:
    from authentication.models import User
"""
