# Overview: Flask extension instances for database and migrations.

import sqlite3

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from sqlalchemy import event
from sqlalchemy.engine import Engine

db = SQLAlchemy()
migrate = Migrate()


# SQLite ignores SELECT ... FOR UPDATE and pysqlite defers BEGIN until the
# first DML statement, which breaks SAVEPOINT. Take over transaction control
# and open every transaction with BEGIN IMMEDIATE so writers are serialized.
@event.listens_for(Engine, "connect")
def _sqlite_disable_driver_transactions(dbapi_connection, connection_record):
    if isinstance(dbapi_connection, sqlite3.Connection):
        dbapi_connection.isolation_level = None


@event.listens_for(Engine, "begin")
def _sqlite_begin_immediate(conn):
    if conn.dialect.name == "sqlite":
        conn.exec_driver_sql("BEGIN IMMEDIATE")
