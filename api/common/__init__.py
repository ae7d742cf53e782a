"""
Reusable building blocks for feature packages: pagination, sanitization,
the generic CRUD service, error types and handlers, request logging, and the
public-route marker.
"""
