# Middleware package init
"""
SnapStream Backend — Middleware Package
=========================================

Request path (outermost first):
    [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → route

Rate limiting runs before anything else so rejected writes cost nothing.
The request id is set before logging so every access line carries it.
"""
