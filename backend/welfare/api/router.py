from fastapi import APIRouter

from welfare.api.budgets import budgets_router, limits_router
from welfare.api.employees import employees_router
from welfare.api.reports import reports_router
from welfare.api.requests import requests_router

api_router = APIRouter()
api_router.include_router(requests_router)
api_router.include_router(limits_router)
api_router.include_router(budgets_router)
api_router.include_router(employees_router)
api_router.include_router(reports_router)
