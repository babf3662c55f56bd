# backend/erpmini/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/erpmini.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #production points this at PostgreSQL
        "sqlite:///erpmini.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Upper bound for list endpoints (orders, sales, transactions)
    DEFAULT_LIST_LIMIT = int(os.environ.get("ERP_DEFAULT_LIST_LIMIT", "200"))

    # Header carrying the branch context for branch-scoped routes
    BRANCH_HEADER = "X-Branch-ID"
