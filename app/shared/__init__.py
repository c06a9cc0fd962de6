"""
Shared module package.

Cross-cutting concerns for the API shell:
- Error handling and mapping
- Security middleware and rate limiting
- Logging configuration
"""
