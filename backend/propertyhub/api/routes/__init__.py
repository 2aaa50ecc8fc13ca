from propertyhub.api.routes import admin_properties, audit, auth, compare, database, feed, properties, public, translate

__all__ = [
    "auth",
    "public",
    "properties",
    "admin_properties",
    "database",
    "compare",
    "translate",
    "feed",
    "audit",
]
