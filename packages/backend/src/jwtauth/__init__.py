"""jwt-auth — access/refresh credential service.

Issues, validates and rotates paired access/refresh JWTs for an email-based
identity store in PostgreSQL. A refresh token is valid only for the refresh
generation it was issued under, so each one can be redeemed exactly once.
"""

__version__ = "0.1.0"
