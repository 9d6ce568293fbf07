"""users/ -- Account management: DTOs, entity mapping, and the user service.

Layer rule: users/ may import from auth/ and core/. It does NOT import from api/.
The service raises users.exceptions errors; api/ maps them to HTTP responses.
"""
