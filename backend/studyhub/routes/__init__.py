# Routes package init
"""
StudyHub Backend - API Routes Package
=====================================

Route Inventory:
    - materials.py:  /api/materials...   (material resource and upvote toggle)
    - health.py:     GET /health         (service health check)

Routes are thin: they pull values out of the request, call MaterialService
and return its response model. Business rules live in the services.
"""
