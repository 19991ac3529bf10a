# Routes package init
"""
Game Platform Backend: API Routes Package
===========================================

What:  HTTP route handlers, one router per domain service.

Route Inventory:
    - auth.py:           /api/auth/*            (users service)
    - users.py:          /api/users/*           (users service)
    - studios.py:        /api/studios/*         (users service)
    - games.py:          /api/games/*           (catalog service)
    - reviews.py:        /api/reviews/*         (reviews service)
    - notifications.py:  /api/notifications/*   (notifications service)
    - social.py:         /api/social/*          (social service)
    - security.py:       /api/security/*        (security service)
    - health.py:         GET /health            (always mounted)

Routes stay THIN: extract request data, call the service, shape the
response. Business rules live in services.
"""
