"""Access token acquisition, reuse and persistence for one LMS setup."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Protocol

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from lms_gateway.application.lms import (
    AccessTokenStore,
    CredentialVault,
    LmsAPIError,
    StoredAccessToken,
    TokenRequestError,
)
from lms_gateway.domain.lms import AccessToken, LmsConfig
from lms_gateway.infrastructure.lms.errors import TokenEndpointError, TokenRejectedError
from lms_gateway.infrastructure.lms.http import (
    extract_error_detail,
    join_url,
    normalize_json_object,
)
from lms_gateway.infrastructure.security.token_cipher import TokenCipher

LOGGER = logging.getLogger(__name__)

# Returns False when the LMS rejects the token; raises when that cannot be told.
TokenProbe = Callable[[AccessToken], bool]


class TokenState(StrEnum):
    """Lifecycle of the token held by a ``TokenManager``."""

    NO_TOKEN = "no_token"
    ACQUIRING = "acquiring"
    VALID = "valid"
    EXPIRED = "expired"
    REJECTED = "rejected"


class TokenGrant(Protocol):
    """Backend-specific shaping of one token endpoint request."""

    def request_token(
        self,
        http_client: httpx.Client,
        url: str,
        *,
        client_name: str,
        client_secret: str,
        timeout_seconds: float,
        issued_at: datetime,
    ) -> AccessToken:
        """Request token from url or raise ``TokenEndpointError``."""
        ...


class TokenEndpointPayload(BaseModel):
    """OAuth2 token endpoint response body."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    token_type: str = "Bearer"
    expires_in: int | None = None

    def to_access_token(self, issued_at: datetime) -> AccessToken:
        expires_at = None
        if self.expires_in is not None and self.expires_in > 0:
            expires_at = issued_at + timedelta(seconds=self.expires_in)
        return AccessToken(
            value=self.access_token,
            token_type=self.token_type or "Bearer",
            expires_at=expires_at,
        )


class ClientCredentialsGrant(TokenGrant):
    """OAuth2 ``client_credentials`` grant posted as a form."""

    def __init__(self, *, token_type: str | None = None) -> None:
        self._token_type = token_type

    def request_token(
        self,
        http_client: httpx.Client,
        url: str,
        *,
        client_name: str,
        client_secret: str,
        timeout_seconds: float,
        issued_at: datetime,
    ) -> AccessToken:
        data = {
            "grant_type": "client_credentials",
            "client_id": client_name,
            "client_secret": client_secret,
        }
        if self._token_type:
            data["token_type"] = self._token_type
        response = http_client.post(
            url,
            data=data,
            headers={"Accept": "application/json"},
            timeout=timeout_seconds,
        )
        if response.status_code >= 400:
            message = f"token endpoint answered status={response.status_code}."
            detail = extract_error_detail(response)
            if detail:
                message = f"{message} detail={detail}"
            raise TokenEndpointError(message, status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as exc:
            raise TokenEndpointError("token endpoint returned invalid JSON payload.") from exc
        if not isinstance(payload, dict):
            raise TokenEndpointError("token endpoint response root must be a JSON object.")
        try:
            parsed = TokenEndpointPayload.model_validate(normalize_json_object(payload))
        except ValidationError as exc:
            raise TokenEndpointError("token endpoint response carries no access_token.") from exc
        if not parsed.access_token.strip():
            raise TokenEndpointError("token endpoint returned an empty access_token.")
        return parsed.to_access_token(issued_at)


def candidate_paths(default_path: str, alternatives: Sequence[str] = ()) -> tuple[str, ...]:
    """Return default path followed by alternatives, de-duplicated in order."""
    return tuple(dict.fromkeys((default_path, *alternatives)))


class TokenManager:
    """Own the access token of one LMS setup.

    The decision to reuse or acquire runs under a lock; the token request itself
    runs outside it while concurrent callers wait for its outcome.
    """

    def __init__(
        self,
        *,
        config: LmsConfig,
        http_client: httpx.Client,
        vault: CredentialVault,
        grant: TokenGrant,
        default_token_path: str,
        alternative_token_paths: Sequence[str] = (),
        token_store: AccessTokenStore | None = None,
        probe: TokenProbe | None = None,
        timeout_seconds: float = 10.0,
        expiry_skew_seconds: float = 30.0,
        cipher_factory: Callable[
            [LmsConfig, CredentialVault], TokenCipher
        ] = TokenCipher.for_config,
        now: Callable[[], datetime] = lambda: datetime.now(tz=UTC),
    ) -> None:
        self._config = config
        self._cipher_factory = cipher_factory
        self._http_client = http_client
        self._vault = vault
        self._grant = grant
        self._candidate_paths = candidate_paths(default_token_path, alternative_token_paths)
        self._token_store = token_store
        self._probe = probe
        self._timeout_seconds = timeout_seconds
        self._expiry_skew = timedelta(seconds=expiry_skew_seconds)
        self._now = now

        self._condition = threading.Condition()
        self._state = TokenState.NO_TOKEN
        self._token: AccessToken | None = None
        self._generation = 0
        self._last_failure: TokenRequestError | None = None
        self._cipher: TokenCipher | None = None

    @property
    def candidate_paths(self) -> tuple[str, ...]:
        return self._candidate_paths

    @property
    def state(self) -> TokenState:
        with self._condition:
            return self._state

    def ensure_token(self) -> AccessToken:
        """Return a usable token, reusing or acquiring one as needed."""
        with self._condition:
            while True:
                token = self._usable_token_locked()
                if token is not None:
                    return token
                if self._state is not TokenState.ACQUIRING:
                    break
                generation = self._generation
                self._condition.wait_for(lambda: self._generation != generation)
                failure = self._last_failure
                if self._token is None and failure is not None:
                    raise TokenRequestError(str(failure), attempted_paths=failure.attempted_paths)
            self._state = TokenState.ACQUIRING

        try:
            token = self._acquire()
        except BaseException as exc:
            with self._condition:
                self._token = None
                self._state = TokenState.NO_TOKEN
                self._last_failure = exc if isinstance(exc, TokenRequestError) else None
                self._generation += 1
                self._condition.notify_all()
            raise

        with self._condition:
            self._token = token
            self._state = TokenState.VALID
            self._last_failure = None
            self._generation += 1
            self._condition.notify_all()
        return token

    def invalidate(self, token: AccessToken) -> None:
        """Discard token after the LMS rejected it; no-op if already replaced."""
        with self._condition:
            if self._token is None or self._token.value != token.value:
                return
            self._token = None
            self._state = TokenState.REJECTED
        LOGGER.info(
            "event=lms_token_rejected lms_setup_id=%s lms_type=%s",
            self._config.id,
            self._config.lms_type.value,
        )
        self._discard_stored_token()

    def _usable_token_locked(self) -> AccessToken | None:
        token = self._token
        if token is None:
            return None
        if token.is_expired(self._now(), skew=self._expiry_skew):
            self._token = None
            self._state = TokenState.EXPIRED
            return None
        return token

    def _acquire(self) -> AccessToken:
        stored = self._load_stored_token()
        if stored is not None:
            LOGGER.info(
                "event=lms_token_reused lms_setup_id=%s lms_type=%s",
                self._config.id,
                self._config.lms_type.value,
            )
            return stored

        token = self._request_from_candidates()
        self._store_token(token)
        return token

    def _request_from_candidates(self) -> AccessToken:
        try:
            client_secret = self._vault.decrypt(self._config.client_secret)
        except ValueError as exc:
            LOGGER.warning(
                "event=lms_client_secret_undecryptable lms_setup_id=%s lms_type=%s",
                self._config.id,
                self._config.lms_type.value,
            )
            raise TokenRequestError(
                f"Client secret of LMS setup {self._config.id} could not be decrypted."
            ) from exc

        attempted: list[str] = []
        for path in self._candidate_paths:
            attempted.append(path)
            try:
                token = self._grant.request_token(
                    self._http_client,
                    join_url(self._config.api_url, path),
                    client_name=self._config.client_name,
                    client_secret=client_secret,
                    timeout_seconds=self._timeout_seconds,
                    issued_at=self._now(),
                )
            except (TokenEndpointError, httpx.HTTPError, httpx.InvalidURL) as exc:
                LOGGER.info(
                    "event=lms_token_path_failed lms_setup_id=%s lms_type=%s path=%s error_type=%s",
                    self._config.id,
                    self._config.lms_type.value,
                    path,
                    exc.__class__.__name__,
                )
                continue

            LOGGER.info(
                "event=lms_token_acquired lms_setup_id=%s lms_type=%s path=%s",
                self._config.id,
                self._config.lms_type.value,
                path,
            )
            return token

        LOGGER.warning(
            "event=lms_token_request_exhausted lms_setup_id=%s lms_type=%s paths=%s",
            self._config.id,
            self._config.lms_type.value,
            ",".join(attempted),
        )
        raise TokenRequestError(
            f"Failed to gain access token from {self._config.lms_type.value} API: "
            f"tried token endpoints: {', '.join(attempted)}",
            attempted_paths=attempted,
        )

    def _load_stored_token(self) -> AccessToken | None:
        if self._token_store is None:
            return None
        try:
            stored = self._token_store.load(self._config.id)
        except Exception as exc:
            LOGGER.warning(
                "event=lms_token_load_failed lms_setup_id=%s error_type=%s",
                self._config.id,
                exc.__class__.__name__,
            )
            return None
        if stored is None:
            return None

        try:
            value = self._token_cipher().decrypt(stored.ciphertext)
        except ValueError:
            LOGGER.warning(
                "event=lms_stored_token_undecryptable lms_setup_id=%s",
                self._config.id,
            )
            self._discard_stored_token()
            return None

        token = AccessToken(
            value=value,
            token_type=stored.token_type,
            expires_at=stored.expires_at,
        )
        if token.is_expired(self._now(), skew=self._expiry_skew):
            self._discard_stored_token()
            return None
        try:
            accepted = self._probe is None or self._probe(token)
        except TokenRejectedError:
            accepted = False
        except (LmsAPIError, httpx.HTTPError, httpx.InvalidURL) as exc:
            # Outcome unknown: request a new token but leave the stored one in place.
            LOGGER.info(
                "event=lms_token_probe_failed lms_setup_id=%s error_type=%s",
                self._config.id,
                exc.__class__.__name__,
            )
            return None
        if not accepted:
            LOGGER.info("event=lms_stored_token_rejected lms_setup_id=%s", self._config.id)
            self._discard_stored_token()
            return None
        return token

    def _store_token(self, token: AccessToken) -> None:
        if self._token_store is None:
            return
        try:
            record = StoredAccessToken(
                ciphertext=self._token_cipher().encrypt(token.value),
                token_type=token.token_type,
                expires_at=token.expires_at,
                stored_at=self._now(),
            )
            self._token_store.save(self._config.id, record)
        except Exception as exc:
            LOGGER.warning(
                "event=lms_token_store_failed lms_setup_id=%s error_type=%s",
                self._config.id,
                exc.__class__.__name__,
            )

    def _discard_stored_token(self) -> None:
        if self._token_store is None:
            return
        try:
            self._token_store.delete(self._config.id)
        except Exception as exc:
            LOGGER.warning(
                "event=lms_token_discard_failed lms_setup_id=%s error_type=%s",
                self._config.id,
                exc.__class__.__name__,
            )

    def _token_cipher(self) -> TokenCipher:
        if self._cipher is None:
            self._cipher = self._cipher_factory(self._config, self._vault)
        return self._cipher
