from fastapi import APIRouter
from okrapp.routers import employees, notifications, reports, reviews, templates

# Centralized API router hub: main.py only imports this single hub.
api_router = APIRouter()

api_router.include_router(reviews.router)
api_router.include_router(templates.router)
api_router.include_router(employees.router)
api_router.include_router(notifications.router)
api_router.include_router(reports.router)
