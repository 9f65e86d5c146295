from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


class ConfigurationError(RuntimeError):
    """Configuración obligatoria ausente; aborta la invocación completa."""


def _default_env_file() -> str:
    return str(Path.cwd() / ".env")


@dataclass(frozen=True)
class Settings:
    # Telemetry store
    db_host: str
    db_port: int
    db_user: str
    db_password: str
    db_name: str
    odbc_driver: str
    telemetry_db_url: Optional[str]
    telemetry_timeout_seconds: float

    # ERP traceability
    dynamics_endpoint_url: Optional[str]
    dynamics_client_id: str
    dynamics_client_password: str
    dynamics_tenant_id: str
    dynamics_environment_id: str
    dynamics_company_name: str
    dynamics_product_name: str
    dynamics_batch_name: str
    dynamics_serial_name: str

    # Grid carbon intensity
    watttime_user: Optional[str]
    watttime_password: str
    watttime_base_url: str

    # Information-model repository
    cloud_library_url: str
    cloud_library_username: str
    cloud_library_password: str

    http_timeout_seconds: float


def _optional(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None


def get_settings() -> Settings:
    # Load env file (if present) but still allow overriding via real environment variables.
    env_file = os.getenv("PCF_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    cloud_library_url = _optional("UA_CLOUD_LIBRARY_URL")
    if cloud_library_url is None:
        raise ConfigurationError("UA_CLOUD_LIBRARY_URL is not set")

    # Driver name depends on the OS image.
    # Common values:
    # - ODBC Driver 17 for SQL Server
    # - ODBC Driver 18 for SQL Server
    odbc_driver = os.getenv("ODBC_DRIVER", "ODBC Driver 18 for SQL Server")

    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "1433")),
        db_user=os.getenv("DB_USER", "sa"),
        db_password=os.getenv("DB_PASSWORD", ""),
        db_name=os.getenv("DB_NAME", "opcua_telemetry"),
        odbc_driver=odbc_driver,
        telemetry_db_url=_optional("TELEMETRY_DB_URL"),
        telemetry_timeout_seconds=float(os.getenv("TELEMETRY_TIMEOUT_SECONDS", "30")),
        dynamics_endpoint_url=_optional("DYNAMICS_ENDPOINT_URL"),
        dynamics_client_id=os.getenv("DYNAMICS_CLIENT_ID", ""),
        dynamics_client_password=os.getenv("DYNAMICS_CLIENT_PASSWORD", ""),
        dynamics_tenant_id=os.getenv("DYNAMICS_TENANT_ID", ""),
        dynamics_environment_id=os.getenv("DYNAMICS_ENVIRONMENT_ID", ""),
        dynamics_company_name=os.getenv("DYNAMICS_COMPANY_NAME", ""),
        dynamics_product_name=os.getenv("DYNAMICS_PRODUCT_NAME", ""),
        dynamics_batch_name=os.getenv("DYNAMICS_BATCH_NAME", ""),
        dynamics_serial_name=os.getenv("DYNAMICS_SERIAL_NAME", ""),
        watttime_user=_optional("WATTTIME_USER"),
        watttime_password=os.getenv("WATTTIME_PASSWORD", ""),
        watttime_base_url=os.getenv("WATTTIME_BASE_URL", "https://api.watttime.org"),
        cloud_library_url=cloud_library_url,
        cloud_library_username=os.getenv("UA_CLOUD_LIBRARY_USERNAME", ""),
        cloud_library_password=os.getenv("UA_CLOUD_LIBRARY_PASSWORD", ""),
        http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS", "30")),
    )
