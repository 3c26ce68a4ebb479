"""
============================================================
TARJETA CRC - application/session_manager.py
============================================================
Class: SessionManager

Responsibilities:
  - Ser el ÚNICO escritor de la sesión (memoria + almacenamiento durable).
  - Login / registro / verificación OTP / reenvío OTP / reset de password.
  - Rehidratar y VALIDAR la sesión persistida contra el backend antes de
    presentarla como autenticada (refresh_session / restore_session).
  - Logout best-effort y teardown global ante cualquier 401.
  - Notificar a los listeners de teardown (los pollers se detienen ahí).

Collaborators:
  - infrastructure.http.ApiClient
  - infrastructure.storage.CredentialStore
  - application.session_state (SessionWriter)
  - audit.ViolationAuditor (transiciones + estados incompletos)
  - application.navigation.Navigator (redirect a LOGIN tras un 401)
  - infrastructure.services.retry (tenacity, solo en validación de sesión)

Constraints:
  - Commit atómico: escritura durable y swap en memoria sin await en medio.
  - Un usuario cacheado nunca se presenta como autenticado sin validar.
  - logout() y restore_session() nunca lanzan.
============================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, TypeVar

from pydantic import ValidationError as PydanticValidationError

from ..audit import ViolationAuditor
from ..context import clear_context, set_session_context
from ..crosscutting.exceptions import (
    ApiError,
    ClientError,
    EmailNotVerifiedError,
    SessionSupersededError,
    StorageError,
    UnauthorizedError,
    ValidationError,
)
from ..crosscutting.logger import logger
from ..domain.audit import ViolationType
from ..domain.entities import PendingRegistration, Session, User
from ..domain.navigation_policy import Route, resolve_landing_route
from ..infrastructure.http.api_client import ApiClient
from ..infrastructure.http.error_mapping import (
    FORGOT_PASSWORD_PATH,
    LOGIN_PATH,
    LOGOUT_PATH,
    ME_PATH,
    REFRESH_PATH,
    REGISTER_PATH,
    RESEND_OTP_PATH,
    VERIFY_OTP_PATH,
)
from ..infrastructure.services.retry import create_retry_decorator
from ..infrastructure.storage.credential_store import CredentialStore
from .navigation import Navigator
from .schemas import (
    Credentials,
    EmailOnly,
    OtpSubmission,
    RegistrationProfile,
    first_error_message,
)
from .session_state import SessionState

M = TypeVar("M")

TeardownListener = Callable[[str], None]


@dataclass(frozen=True, slots=True)
class AuthResult:
    """Sesión recién confirmada + ruta calculada por el Status Router."""

    session: Session
    landing_route: Route


@dataclass(frozen=True, slots=True)
class BootstrapResult:
    """Estado inicial tras un arranque en frío."""

    session: Session | None
    route: Route
    pending: PendingRegistration | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None


def _validate(model: type[M], **fields: Any) -> M:
    try:
        return model(**fields)
    except PydanticValidationError as exc:
        raise ValidationError(first_error_message(exc)) from exc


def _token_from(data: Any) -> tuple[str | None, str | None]:
    if not isinstance(data, Mapping):
        return None, None
    token = data.get("accessToken") or data.get("token")
    refresh = data.get("refreshToken")
    return (str(token) if token else None), (str(refresh) if refresh else None)


class SessionManager:
    """
    Orquesta el ciclo de vida de la sesión.

    Todas las operaciones públicas son async y lanzan errores tipados, salvo
    logout / restore_session / handle_unauthorized que no lanzan.
    """

    def __init__(
        self,
        *,
        api: ApiClient,
        credentials: CredentialStore,
        state: SessionState,
        auditor: ViolationAuditor,
        navigator: Navigator | None = None,
        retry_decorator: Callable[[Callable[..., Any]], Callable[..., Any]] | None = None,
    ) -> None:
        self._api = api
        self._credentials = credentials
        self._state = state
        self._writer = state.claim_writer()
        self._auditor = auditor
        self._navigator = navigator
        self._retry = retry_decorator or create_retry_decorator()
        self._listeners: list[TeardownListener] = []
        # R: cambia en cada commit/teardown; detecta validaciones obsoletas.
        self._epoch = 0
        self._tearing_down = False
        self._pending: PendingRegistration | None = credentials.load_pending()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def session(self) -> Session | None:
        return self._state.session

    @property
    def pending_registration(self) -> PendingRegistration | None:
        return self._pending

    def on_teardown(self, listener: TeardownListener) -> Callable[[], None]:
        """Registra un listener; devuelve la función para desregistrarlo."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Credential exchange
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str) -> AuthResult:
        """
        Raises:
            ValidationError, InvalidCredentialsError, EmailNotVerifiedError,
            RateLimitedError, NetworkError
        """
        creds = _validate(Credentials, email=email, password=password)
        try:
            data = await self._api.post(
                LOGIN_PATH, json={"email": creds.email, "password": creds.password}
            )
        except EmailNotVerifiedError as exc:
            pending = PendingRegistration(email=exc.email or creds.email, user_id=exc.user_id)
            self._save_pending(pending)
            logger.info("Login blocked until email is verified")
            raise

        session = self._session_from(data)
        self._commit(session, action="login", clear_pending=True)
        return AuthResult(session=session, landing_route=resolve_landing_route(session.user))

    async def register(self, profile: RegistrationProfile | Mapping[str, Any]) -> str:
        """Alta de cuenta. No crea sesión: deja un registro pendiente de OTP."""
        if not isinstance(profile, RegistrationProfile):
            profile = _validate(RegistrationProfile, **dict(profile))

        data = await self._api.post(REGISTER_PATH, json=profile.to_request_body())
        data = data if isinstance(data, Mapping) else {}
        user_id = str(data.get("userId") or data.get("id") or "")
        email = str(data.get("email") or profile.email)

        self._save_pending(PendingRegistration(email=email, user_id=user_id or None))
        logger.info("Registration accepted, awaiting OTP", extra={"role_id": profile.role_id})
        return user_id

    async def verify_otp(self, email: str, code: str) -> AuthResult:
        """
        Raises:
            ValidationError, InvalidOtpError, OtpExpiredError, RateLimitedError,
            NetworkError
        """
        submission = _validate(OtpSubmission, email=email, code=code)
        data = await self._api.post(
            VERIFY_OTP_PATH,
            json={
                "email": submission.email,
                "userId": submission.email,
                "otp": submission.code,
            },
        )
        session = self._session_from(data)
        self._commit(session, action="verify_otp", clear_pending=True)
        return AuthResult(session=session, landing_route=resolve_landing_route(session.user))

    async def resend_otp(self, email: str) -> None:
        target = _validate(EmailOnly, email=email)
        data = await self._api.post(RESEND_OTP_PATH, json={"email": target.email})

        user_id = data.get("userId") if isinstance(data, Mapping) else None
        pending = self._pending
        if user_id and pending is not None and pending.email == target.email:
            self._save_pending(PendingRegistration(email=pending.email, user_id=str(user_id)))

    async def request_password_reset(self, email: str) -> None:
        target = _validate(EmailOnly, email=email)
        await self._api.post(FORGOT_PASSWORD_PATH, json={"email": target.email})

    # ------------------------------------------------------------------
    # Validation against the backend
    # ------------------------------------------------------------------

    async def refresh_session(self) -> Session:
        """
        Rehidrata desde el almacenamiento y valida contra el backend.

        Con refresh token: POST /auth/refresh primero (token rotado), luego
        GET /auth/me con el token candidato. Solo entonces se confirma.

        Raises:
            UnauthorizedError: no hay token o el backend lo rechazó
            SessionSupersededError: la sesión cambió mientras se validaba
            NetworkError / ApiError: fallas transitorias agotadas
        """
        token = self._credentials.load_token()
        if not token:
            raise UnauthorizedError("No stored session")
        refresh_token = self._credentials.load_refresh_token()
        epoch = self._epoch

        if refresh_token:
            data = await self._retry(self._api.post)(
                REFRESH_PATH, json={"refreshToken": refresh_token}, token=token
            )
            new_token, new_refresh = _token_from(data)
            token = new_token or token
            refresh_token = new_refresh or refresh_token

        me = await self._retry(self._api.get)(ME_PATH, token=token)
        user = self._user_from(me)

        if epoch != self._epoch:
            raise SessionSupersededError("Session changed while it was being validated")

        session = Session(token=token, user=user, refresh_token=refresh_token)
        self._commit(session, action="refresh_session")
        return session

    async def restore_session(self) -> BootstrapResult:
        """Arranque en frío. Nunca lanza."""
        pending = self._credentials.load_pending()
        self._pending = pending

        if not self._credentials.load_token():
            return BootstrapResult(session=None, route=self._entry_route(None), pending=pending)

        try:
            session = await self.refresh_session()
        except SessionSupersededError:
            current = self._state.session
            return BootstrapResult(
                session=current, route=self._entry_route(current), pending=self._pending
            )
        except UnauthorizedError:
            logger.info("Stored session rejected by the backend")
            if self._credentials.load_token():
                self._teardown("bootstrap_rejected")
            return BootstrapResult(session=None, route=Route.LOGIN, pending=None)
        except ClientError as exc:
            # Red / 5xx: se conservan las credenciales para el próximo arranque.
            logger.warning(
                "Session validation failed, starting unauthenticated",
                extra={"error_code": exc.error_code, "error": exc.message},
            )
            return BootstrapResult(
                session=None, route=self._entry_route(None), pending=self._pending
            )
        except Exception:
            logger.exception("Unexpected error while restoring session")
            return BootstrapResult(
                session=None, route=self._entry_route(None), pending=self._pending
            )

        return BootstrapResult(
            session=session, route=resolve_landing_route(session.user), pending=None
        )

    async def refresh_user(self) -> Route:
        """Re-lee el usuario (GET /auth/me) y re-evalúa el Status Router."""
        before = self._state.session
        if before is None:
            raise UnauthorizedError("Not authenticated")

        me = await self._api.get(ME_PATH)
        user = self._user_from(me)

        current = self._state.session
        if current is None or current.token != before.token:
            raise SessionSupersededError("Session changed while the user was refreshed")

        session = Session(token=current.token, user=user, refresh_token=current.refresh_token)
        self._commit(session, action="refresh_user")
        return resolve_landing_route(user)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def logout(self) -> None:
        """POST /auth/logout best-effort; el teardown local ocurre siempre."""
        session = self._state.session
        refresh_token = (
            session.refresh_token if session else None
        ) or self._credentials.load_refresh_token()
        try:
            if session is not None or refresh_token:
                body = {"refreshToken": refresh_token} if refresh_token else {}
                await self._api.post(LOGOUT_PATH, json=body)
        except ClientError as exc:
            logger.info(
                "Logout request failed, clearing local session anyway",
                extra={"error_code": exc.error_code},
            )
        finally:
            self._teardown("logout")

    def handle_unauthorized(self) -> None:
        """
        Teardown global ante un 401 (sin llamada al backend) + redirect a LOGIN.

        Re-entrante: un 401 que llega mientras ya se está desmontando se ignora.
        """
        if self._tearing_down:
            return
        had_session = self._state.session is not None
        if not had_session and not self._credentials.load_token():
            return

        self._tearing_down = True
        try:
            previous = self._teardown("unauthorized")
            if previous is not None:
                self._auditor.record_violation(
                    ViolationType.SESSION_REVOKED,
                    {"user_id": previous.user.id, "role_id": previous.user.role_id},
                )
            if self._navigator is not None:
                self._navigator.go(Route.LOGIN)
        finally:
            self._tearing_down = False

    def abandon_pending_registration(self) -> None:
        if self._pending is None and self._credentials.load_pending() is None:
            return
        self._credentials.clear_pending()
        self._pending = None
        logger.info("Pending registration abandoned")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _entry_route(self, session: Session | None) -> Route:
        if session is not None:
            return resolve_landing_route(session.user)
        return Route.VERIFY_OTP if self._pending is not None else Route.LOGIN

    def _save_pending(self, pending: PendingRegistration) -> None:
        try:
            self._credentials.save_pending(pending)
        except OSError as exc:
            logger.error("Failed to persist pending registration", extra={"error": str(exc)})
            raise StorageError(
                "Could not save the pending registration on this device", original_error=exc
            ) from exc
        self._pending = pending

    @staticmethod
    def _user_from(data: Any) -> User:
        if not isinstance(data, Mapping):
            raise ApiError("The server returned an invalid user payload")
        return User.from_payload(dict(data))

    def _session_from(self, data: Any) -> Session:
        token, refresh_token = _token_from(data)
        if not token:
            raise ApiError("The server did not return an access token")
        return Session(token=token, user=self._user_from(data), refresh_token=refresh_token)

    def _commit(self, session: Session, *, action: str, clear_pending: bool = False) -> None:
        # Sin await: escritura durable + swap son atómicos frente a los pollers.
        # Si la escritura falla no hay swap: la sesión previa queda intacta.
        try:
            self._credentials.save_session(
                token=session.token, user=session.user, refresh_token=session.refresh_token
            )
            if clear_pending:
                self._credentials.clear_pending()
        except OSError as exc:
            logger.error(
                "Failed to persist session", extra={"action": action, "error": str(exc)}
            )
            raise StorageError(
                "Could not save the session on this device", original_error=exc
            ) from exc
        if clear_pending:
            self._pending = None

        previous = self._writer.swap(session)
        self._epoch += 1
        set_session_context(user_id=session.user.id, role_id=str(session.user.role_id))

        self._auditor.audit_auth(session.user, action)
        self._auditor.record_transition(action, previous, session)
        logger.info(
            "Session committed",
            extra={"action": action, "landing_route": resolve_landing_route(session.user).value},
        )

    def _teardown(self, action: str) -> Session | None:
        try:
            self._credentials.clear_all()
        except OSError as exc:
            logger.error("Failed to clear stored credentials", extra={"error": str(exc)})

        previous = self._writer.swap(None)
        self._epoch += 1
        self._pending = None
        clear_context()
        self._auditor.record_transition(action, previous, None)
        logger.info("Session torn down", extra={"action": action})

        for listener in list(self._listeners):
            try:
                listener(action)
            except Exception:
                logger.exception("Teardown listener failed", extra={"action": action})
        return previous
