"""
Models package for the creator subscription billing service
"""
import sqlite3

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

db = SQLAlchemy()


# pysqlite starts transactions lazily and ignores SAVEPOINT boundaries; hand
# transaction control to SQLAlchemy so nested transactions behave on SQLite too.
@event.listens_for(Engine, "connect")
def _sqlite_on_connect(dbapi_connection, connection_record):
    if isinstance(dbapi_connection, sqlite3.Connection):
        dbapi_connection.isolation_level = None


@event.listens_for(Engine, "begin")
def _sqlite_on_begin(conn):
    if conn.dialect.name == "sqlite":
        conn.exec_driver_sql("BEGIN")


# Import all models here to ensure they're registered
from models.user import User
from models.plan import SubscriptionPlan
from models.subscription import Subscription
from models.transaction import Transaction
from models.webhook_log import WebhookLog

__all__ = [
    'db',
    'User',
    'SubscriptionPlan',
    'Subscription',
    'Transaction',
    'WebhookLog',
]
