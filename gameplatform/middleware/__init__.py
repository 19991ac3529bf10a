# Middleware package init
"""
Game Platform Backend: Middleware Package
===========================================

What:  Cross-cutting concerns applied to every request, shared by the
       platform app and the gateway.

Middleware Chain (order matters!):
    Request → [Rate Limit] → [Request ID] → [Logging] → [CORS] → Route Handler

    1. Rate Limit FIRST: reject abusive clients before any processing
    2. Request ID: correlation ID for logs and for upstream calls
    3. Logging: method, path, status and duration with the request ID
"""
