# Routes package init
"""
SnapStream Backend — API Routes Package
=========================================

Route Inventory:
    - auth.py:    POST /api/signup, POST /api/login
    - snaps.py:   POST /api/snaps
                  GET  /api/snaps/image/{id}
                  GET  /api/snaps/{id}
    - feed.py:    GET  /api/feed
    - live.py:    WS   /ws/snaps
    - health.py:  GET  /health

Handlers stay thin: parse the request, call a service, shape the response.
"""
