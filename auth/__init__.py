"""auth/ -- Accounts, credentials, and server-side sessions for the student portal.

Layer rule: auth/ imports stdlib, third-party libraries, and core/ only.
It does NOT import from api/, web/, or students/.
api/, web/, and students/ import from auth/, not the other way around.
"""
