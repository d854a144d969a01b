# routes_root.py
"""
Root / basic endpoints (health, landing).
"""

from fastapi import APIRouter
from fastapi.responses import RedirectResponse

from app.services.sms_rules import get_rules

router = APIRouter()


@router.get("/")
def read_root():
    """
    Landing endpoint; the dashboard is the start page.
    """
    return RedirectResponse(url="/dashboard", status_code=302)


@router.get("/health")
def health():
    return {"status": "ok", "rules_version": get_rules().version}
