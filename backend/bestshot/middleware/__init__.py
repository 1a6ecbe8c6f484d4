"""
Best Shot Backend — Middleware Package
========================================

Middleware Chain (request direction):
    Request → [Code Guess Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

    1. Code guess limit first: blocked clients are turned away before any work
    2. Request ID: correlation ID for every later log line
    3. Logging: one access line with status and duration
"""
