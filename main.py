# main.py
# Role: Application entry point for the SMS expense tracker.
#       Configures logging, creates database tables, seeds the default
#       categories/merchant rules, and registers all route modules.

"""
Main FastAPI app for the SMS expense tracker.

Here we only:
- configure logging
- create DB tables and the global defaults
- include route modules
"""

import logging

from fastapi import FastAPI

from db import Base, SessionLocal, engine
from app import settings
from app.routes_root import router as root_router
from app.routes_sms import router as sms_router
from app.routes_merchants import router as merchants_router
from app.routes_transactions import router as transactions_router
from app.routes_categories import router as categories_router
from app.routes_subscriptions import router as subscriptions_router
from app.routes_dashboard import router as dashboard_router
from app.services.onboarding import seed_global_defaults


logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# -------------------------------------------------------------------
# App & DB setup
# -------------------------------------------------------------------

# Create database tables (only if they don't exist yet).
# This is safe to run on startup for SQLite and development usage.
Base.metadata.create_all(bind=engine)

# Owner-less template categories/rules copied to each user on first use
with SessionLocal() as _session:
    seed_global_defaults(_session)

# FastAPI application instance
app = FastAPI(title="SMS Expense Tracker")

# -------------------------------------------------------------------
# Include routers
# -------------------------------------------------------------------

# Root / health
app.include_router(root_router)

# Inbound SMS, inbox scans, notifications
app.include_router(sms_router)

# Merchant dictionary and naming backlog
app.include_router(merchants_router)

# Transactions list, manual entry, edits
app.include_router(transactions_router)

# Categories and budgets
app.include_router(categories_router)

# Recurring payments
app.include_router(subscriptions_router)

# Dashboard (monthly overview, burn rate, insights)
app.include_router(dashboard_router)
