"""
FastAPI routers grouped by domain (cards, profiles, claim, auth, account, pages).

Each module exposes an APIRouter included by kardo.app. The administrator
surface lives in its own ASGI app (kardo.admin_app).
"""
