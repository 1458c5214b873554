"""Credential primitives.

Learn: Two pieces, both standard:
1. Passwords → bcrypt hash at registration, checkpw at login
2. Sessions → signed JWT, verified again at every startup

Both feed the credential service and the session store.
"""
