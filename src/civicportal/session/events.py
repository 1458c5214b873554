"""Session event type constants.

Learn: Subscribers of SessionContext receive one of these with every
state change. Centralizing them prevents typos in listeners.
"""

SESSION_RESTORED = "session.restored"
SESSION_ANONYMOUS = "session.anonymous"
SESSION_LOGGED_IN = "session.logged_in"
SESSION_REGISTERED = "session.registered"
SESSION_LOGGED_OUT = "session.logged_out"
SESSION_PROFILE_UPDATED = "session.profile_updated"
