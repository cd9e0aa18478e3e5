"""
asgi.py -- Application assembly for the student portal.

This is the ONLY file that imports from both api/ and web/. It joins the app
object (api/main.py) with the HTML routes and error pages (web/routes.py).

Run with:  uvicorn asgi:app --reload
           python main.py
"""

from api.main import app
from web.routes import install_error_pages
from web.routes import router as web_router

app.include_router(web_router, tags=["Web UI"])
install_error_pages(app)
