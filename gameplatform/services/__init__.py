# Services package init
"""
Game Platform Backend: Services Layer
=======================================

What:  Business rules sitting between routes (HTTP) and models (persistence).
How:   One stateless class per domain with a module-level singleton. Every
       method receives the request's AsyncSession, so in-process calls
       between services (welcome notification, rating propagation, security
       event logging) share one transaction.

Service Inventory:
    - auth_service:          registration, login, sessions, tokens
    - user_service:          profiles, search, account lifecycle
    - verification_service:  developer/publisher verification workflow
    - game_service:          catalog
    - review_service:        reviews
    - rating_service:        aggregated game ratings
    - notification_service:  inbox and delivery preferences
    - notification_sender:   outbound e-mail channel
    - friend_service:        friend requests and friend lists
    - message_service:       direct messages
    - security_service:      security events, risk checks, IP blocks, alerts
"""
