"""
Platera Backend — Middleware Package
====================================

Middleware Chain:
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

    - rate_limit.py:  per-IP sliding window; /health and /api/webhooks exempt
    - request_id.py:  X-Request-ID propagation through a ContextVar
    - logging.py:     one access line per request on "platera.access"
"""
