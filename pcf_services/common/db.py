from __future__ import annotations

from urllib.parse import quote_plus
import logging

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine

from .config import Settings


logger = logging.getLogger(__name__)


def build_sqlalchemy_url(settings: Settings) -> str:
    if settings.telemetry_db_url:
        return settings.telemetry_db_url

    # Use the recommended odbc_connect form.
    # This handles:
    # - passwords with special characters
    # - driver names with spaces
    # - SQL Server port syntax (SERVER=host,port)
    odbc_str = (
        f"DRIVER={{{settings.odbc_driver}}};"
        f"SERVER={settings.db_host},{settings.db_port};"
        f"DATABASE={settings.db_name};"
        f"UID={settings.db_user};"
        f"PWD={settings.db_password};"
        "TrustServerCertificate=yes;"
    )

    return f"mssql+pyodbc:///?odbc_connect={quote_plus(odbc_str)}"


def get_engine(settings: Settings) -> Engine:
    url = build_sqlalchemy_url(settings)

    connect_args = {}
    if url.startswith("mssql+pyodbc"):
        # pyodbc: login timeout en segundos
        connect_args["timeout"] = int(settings.telemetry_timeout_seconds)

    if settings.telemetry_db_url:
        logger.info("[DB] Crear engine telemetría url=%s", _redact(url))
    else:
        # Log básico de parámetros de conexión (sin contraseña)
        logger.info(
            "[DB] Crear engine telemetría host=%s port=%s db=%s user=%s driver=%s",
            settings.db_host,
            settings.db_port,
            settings.db_name,
            settings.db_user,
            settings.odbc_driver,
        )

    if url.startswith("sqlite"):
        engine = create_engine(url)
    else:
        engine = create_engine(
            url,
            pool_pre_ping=True,
            pool_timeout=settings.telemetry_timeout_seconds,
            connect_args=connect_args,
        )
        if url.startswith("mssql+pyodbc"):
            apply_query_timeout(engine, int(settings.telemetry_timeout_seconds))

    # Test de conexión: ayuda a ver en logs si el job realmente llega al store
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("[DB] Test de conexión OK")
    except Exception:
        logger.exception("[DB] Test de conexión FALLÓ")

    return engine


def apply_query_timeout(engine: Engine, seconds: int):
    """Timeout por sentencia en cada conexión DBAPI nueva (pyodbc ``Connection.timeout``)."""

    @event.listens_for(engine, "connect")
    def _set_query_timeout(dbapi_conn, connection_record):
        dbapi_conn.timeout = seconds

    return _set_query_timeout


def _redact(url: str) -> str:
    head, sep, tail = url.partition("@")
    if not sep or "://" not in head:
        return url
    scheme, _, creds = head.partition("://")
    user = creds.split(":", 1)[0]
    return f"{scheme}://{user}:***@{tail}"
