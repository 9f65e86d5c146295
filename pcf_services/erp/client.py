"""Cliente del servicio de trazabilidad ERP con renovación de bearer token.

La autenticación es un intercambio en dos pasos:

1. OAuth2 client-credentials contra el identity provider (token Entra).
2. Intercambio de ese token por un bearer token del servicio de trazabilidad,
   acotado al entorno (``context_type=finops-env``).

Estados: UNAUTHENTICATED -> AUTHENTICATED -> EXPIRED -> AUTHENTICATED.
Un 401/403 provoca exactamente una re-autenticación y un único reintento.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Optional

import httpx
from pydantic import ValidationError

from .models import TraceabilityQuery, TraceabilityResponse

logger = logging.getLogger(__name__)

IDENTITY_URL_TEMPLATE = "https://login.microsoftonline.com/{tenant_id}/oauth2/v2.0/token"
IDENTITY_SCOPE = "0cdb527f-a8d1-4bf8-9436-b352c68682b2/.default"
SECURITY_SERVICE_URL = "https://securityservice.operations365.dynamics.com/token"
TRACEABILITY_SCOPE = "https://traceabilityservice.operations365.dynamics.com/.default"

_AUTH_FAILURE_CODES = (401, 403)
# Respuestas del IdP o del security service que rechazan las credenciales
_CREDENTIAL_REJECTED_CODES = (400, 401, 403)


class TraceabilityError(Exception):
    """Fallo de transporte o respuesta inválida del servicio de trazabilidad."""


class TraceabilityAuthError(TraceabilityError):
    """No se pudo (re)autenticar contra el servicio de trazabilidad."""


def _check_token_response(resp: httpx.Response, service: str) -> None:
    if resp.status_code in _CREDENTIAL_REJECTED_CODES:
        raise TraceabilityAuthError(f"{service} rejected the credentials: {resp.status_code}")
    if resp.status_code != 200:
        raise TraceabilityError(f"{service} returned {resp.status_code}")


class AuthState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    EXPIRED = "expired"


class TraceabilityClient:
    """Owns one HTTP session and its bearer token for the process lifetime.

    The lock serializes authorization and requests: re-authentication mutates
    the session's Authorization header in place.
    """

    def __init__(
        self,
        endpoint_url: Optional[str],
        client_id: str,
        client_secret: str,
        tenant_id: str,
        environment_id: str,
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
        identity_url: Optional[str] = None,
        security_service_url: str = SECURITY_SERVICE_URL,
    ):
        self._endpoint_url = endpoint_url.rstrip("/") if endpoint_url else None
        self._client_id = client_id
        self._client_secret = client_secret
        self._tenant_id = tenant_id
        self._environment_id = environment_id
        self._identity_url = identity_url or IDENTITY_URL_TEMPLATE.format(tenant_id=tenant_id)
        self._security_service_url = security_service_url
        self._http = http_client or httpx.Client(timeout=timeout)

        self._state = AuthState.UNAUTHENTICATED
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings, http_client: Optional[httpx.Client] = None) -> "TraceabilityClient":
        return cls(
            endpoint_url=settings.dynamics_endpoint_url,
            client_id=settings.dynamics_client_id,
            client_secret=settings.dynamics_client_password,
            tenant_id=settings.dynamics_tenant_id,
            environment_id=settings.dynamics_environment_id,
            timeout=settings.http_timeout_seconds,
            http_client=http_client,
        )

    @property
    def state(self) -> AuthState:
        with self._lock:
            return self._state

    @property
    def is_configured(self) -> bool:
        return bool(self._endpoint_url)

    @property
    def query_url(self) -> str:
        return f"{self._endpoint_url}/api/environments/{self._environment_id}/traces/Query"

    def authorize(self) -> None:
        with self._lock:
            self._authorize_locked()

    def _authorize_locked(self) -> None:
        # El bearer anterior no debe viajar al identity provider
        self._http.headers.pop("Authorization", None)
        try:
            # Paso 1: token Entra (client credentials)
            resp = self._http.post(
                self._identity_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "scope": IDENTITY_SCOPE,
                },
            )
            _check_token_response(resp, "identity provider")
            entra_token = resp.json()["access_token"]

            # Paso 2: bearer token del servicio, acotado al entorno
            resp = self._http.post(
                self._security_service_url,
                json={
                    "grant_type": "client_credentials",
                    "client_assertion_type": "aad_app",
                    "client_assertion": entra_token,
                    "scope": TRACEABILITY_SCOPE,
                    "context": self._environment_id,
                    "context_type": "finops-env",
                },
            )
            _check_token_response(resp, "security service")
            bearer = resp.json()["accessToken"]
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
            # Token service inalcanzable o respuesta ilegible: no es un rechazo de credenciales
            self._state = AuthState.UNAUTHENTICATED
            raise TraceabilityError(f"token exchange failed: {e}") from e
        except TraceabilityError:
            self._state = AuthState.UNAUTHENTICATED
            raise

        self._http.headers["Authorization"] = f"Bearer {bearer}"
        self._state = AuthState.AUTHENTICATED
        logger.info("traceability_authorized environment=%s", self._environment_id)

    def _post_query(self, query: TraceabilityQuery) -> httpx.Response:
        try:
            return self._http.post(self.query_url, json=query.to_wire())
        except httpx.HTTPError as e:
            raise TraceabilityError(f"traceability request failed: {e}") from e

    def query(self, query: TraceabilityQuery) -> Optional[TraceabilityResponse]:
        """Ejecuta una consulta de genealogía. ``None`` si el servicio no está configurado."""
        if not self.is_configured:
            logger.info("traceability_not_configured; skipping query")
            return None

        with self._lock:
            if self._state is not AuthState.AUTHENTICATED:
                self._authorize_locked()

            resp = self._post_query(query)
            if resp.status_code in _AUTH_FAILURE_CODES:
                logger.info(
                    "traceability_token_expired status=%d; re-authorizing once",
                    resp.status_code,
                )
                self._state = AuthState.EXPIRED
                self._authorize_locked()
                # Mismo path que la petición original
                resp = self._post_query(query)
                if resp.status_code in _AUTH_FAILURE_CODES:
                    self._state = AuthState.EXPIRED
                    raise TraceabilityAuthError(
                        f"still unauthorized after re-authorization: {resp.status_code}"
                    )

        if resp.status_code != 200:
            raise TraceabilityError(f"traceability query returned {resp.status_code}")

        try:
            return TraceabilityResponse.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise TraceabilityError(f"invalid traceability response: {e}") from e

    def close(self) -> None:
        self._http.close()
