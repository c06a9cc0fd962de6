"""
Shared error handling package.

Centralizes error-to-HTTP mapping so that chart analysis errors
are consistently translated into API responses.
"""
