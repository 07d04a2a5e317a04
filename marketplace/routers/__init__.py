"""
FastAPI routers grouped by resource (nfts, subscriptions, auth, users).

Each module exposes an APIRouter that ``marketplace.app.create_app`` includes.
Handlers stay thin: parse the request, call a service, wrap the result in the
``{"status": "success", ...}`` envelope.
"""
