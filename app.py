# app.py
"""
Thin entrypoint for the usage billing API.

Usage example:
    uvicorn app:app --reload
"""

from usage_billing.main import app  # re-export FastAPI instance
