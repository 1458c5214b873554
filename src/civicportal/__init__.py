"""Civic Portal — session, credentials and access rules for civic issue reporting.

Citizens report issues (potholes, broken street lights, water supply)
and administrators triage them. This package is the client-side core:
who is logged in, how that session is stored and revalidated, and which
issues and actions each identity may see.
"""

__version__ = "0.1.0"
