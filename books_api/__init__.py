"""
Reading Log Books API.

This package provides a small REST API for:
- Registering, listing, updating and deleting book records
- Owner-scoped listing protected by bearer token authentication
"""
