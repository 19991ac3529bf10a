"""
Game Platform Backend: API Gateway

Single public entry point that forwards /api/* calls to the platform
services (see gateway.proxy for the routing table).
"""
