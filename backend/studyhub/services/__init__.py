# Services package init
"""
StudyHub Backend - Services Layer
=================================

What:  Business logic and persistence adapters between the routes (HTTP)
       and the database.

Service Inventory:
    - drive_links:       share-link → canonical thumbnail URL (pure)
    - material_store:    MaterialStore, MaterialFilter (SQL for materials)
    - user_directory:    UserDirectory (verified-user lookup, read only)
    - material_service:  MaterialService, the resource controller, and the
                         `get_material_service` dependency used by routes
"""
