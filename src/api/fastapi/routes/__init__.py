from fastapi import FastAPI
from . import health, reviews

def register_routes(app: FastAPI):
    app.include_router(health.router)
    app.include_router(reviews.router)
