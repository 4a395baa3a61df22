# Middleware package init
"""
minimux: Bundled Middleware
===========================

What:  Cross-cutting Handler → Handler wrappers shipped with the framework.
       request_id.py holds the correlation ID generator used by App itself.

Recommended chain (order matters):
    app.use(recover, request_logging, rate_limit())

    Request → [Recover] → [Logging] → [Rate Limit] → Handler
    Response ← [Recover] ← [Logging] ← [Rate Limit] ← Handler

    1. Recover outermost: catches anything the inner layers raise
    2. Logging: records the final status, including rejected requests
    3. Rate Limit: rejects abusive clients before the handler runs
"""
