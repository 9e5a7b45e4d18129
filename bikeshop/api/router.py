"""Central router that includes all sub-routers."""

from fastapi import APIRouter

from bikeshop.api.public import router as public_router
from bikeshop.api.customer import router as customer_router
from bikeshop.api.workshop import router as workshop_router
from bikeshop.api.admin import router as admin_router
from bikeshop.api.ajax import router as ajax_router

api_router = APIRouter()
api_router.include_router(public_router)
api_router.include_router(customer_router)
api_router.include_router(workshop_router)
api_router.include_router(admin_router)
api_router.include_router(ajax_router)
