"""Authentication and authorization.

Learn: Two ways to obtain a session token:
1. Email/password → bcrypt-verified → JWT
2. Google OAuth → profile lookup or account creation → JWT

Both end in the same stateless bearer token, which the session guard
resolves to the acting user's id on every protected request.
"""
