from fastapi import APIRouter

from propertyhub.api.routes import admin_properties, audit, auth, compare, database, feed, properties, public, translate

api_router = APIRouter()
api_router.include_router(auth.router)
api_router.include_router(public.router)
api_router.include_router(properties.router)
api_router.include_router(admin_properties.router)
api_router.include_router(database.router)
api_router.include_router(compare.router)
api_router.include_router(translate.router)
api_router.include_router(feed.router)
api_router.include_router(audit.router)
