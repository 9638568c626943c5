"""Authentication primitives.

Learn: Two ways to prove who you are:
1. Phone → OTP → JWT access token + opaque refresh token (primary)
2. Email/password → the same token pair (secondary)

Both end in a CurrentIdentity carried by every protected request.
"""
