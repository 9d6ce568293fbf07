"""auth/ -- Credential storage and token handling for the backend template.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/ or users/.
api/ and users/ import from auth/, not the other way around.
"""
