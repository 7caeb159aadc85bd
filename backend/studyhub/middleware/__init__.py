# Middleware package init
"""
StudyHub Backend - Middleware Package
=====================================

Middleware chain (request direction):
    [Request ID] → [Rate Limit] → [Access Log] → [GZip] → [CORS] → route

    The request id is assigned first, so every response, 429s included,
    carries it in the X-Request-ID header and in error bodies. Rate limiting
    comes next and rejects before any route work.
"""
