# Middleware package init
"""
Home Pager Backend — Middleware Package
========================================

What:  Cross-cutting concerns applied to every request, API and static alike.

Middleware Chain (order matters!):
    Request → [Security Headers] → [Request Metrics] → [Logging] → Route Handler

    Why this order:
    1. Security headers OUTERMOST: every response leaving the app carries
       them, including 404s from the static delegate and 405s.
    2. Request metrics: counts each inbound request exactly once, before any
       handler can fail.
    3. Logging: innermost, so the logged duration is handler time.
"""
