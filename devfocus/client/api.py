"""
DevFocus - API Client
=====================

Typed async client for the DevFocus REST API.

Credentials travel in an explicit ``RequestContext`` rather than in ambient
client state, so one client can serve several users. Non-2xx responses are
mapped back onto the server's error taxonomy; a 401 surfaces as ``AuthError``
for the caller to handle.

Usage:
    async with DevFocusClient("http://localhost:8000") as client:
        auth = await client.login("ada@example.com", "Secret123")
        ctx = RequestContext(token=auth.token)
        tasks = await client.list_tasks(ctx)
"""

from dataclasses import dataclass
from typing import Any, Optional, TypeVar
from uuid import UUID

import httpx
import structlog
from pydantic import BaseModel

from devfocus.core.exceptions import (
    ERRORS_BY_CODE,
    ERRORS_BY_STATUS,
    DevFocusError,
    ExternalServiceError,
)
from devfocus.core.schemas import (
    BreakdownItem,
    BreakdownRequest,
    BreakdownResponse,
    BreakSuggestionRequest,
    BreakSuggestionResponse,
    EmailRequest,
    HealthResponse,
    MessageResponse,
    OTPVerify,
    PasswordChange,
    PasswordReset,
    RegisterResponse,
    SessionComplete,
    SessionCompleteResponse,
    SessionCreate,
    SessionListResponse,
    SessionResponse,
    StatsResponse,
    TaskCreate,
    TaskListResponse,
    TaskResponse,
    TaskUpdate,
    TokenResponse,
    UserCreate,
    UserLogin,
    UserResponse,
)

logger = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)

DEFAULT_API_PREFIX = "/api/v1"


@dataclass(frozen=True)
class RequestContext:
    """Per-call credentials."""
    token: Optional[str] = None

    def headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}


def error_from_response(response: httpx.Response) -> DevFocusError:
    """Build the taxonomy error matching a non-2xx response."""
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    detail = body.get("detail") or body.get("error") or response.reason_phrase
    error_cls = ERRORS_BY_CODE.get(body.get("code") or "")
    if error_cls is None:
        error_cls = ERRORS_BY_STATUS.get(response.status_code, DevFocusError)

    return error_cls(str(detail), status_code=response.status_code)


def dump(model: BaseModel, **kwargs: Any) -> dict[str, Any]:
    """Serialize a request model as camelCase JSON."""
    return model.model_dump(mode="json", by_alias=True, **kwargs)


class DevFocusClient:
    """Async HTTP client for the DevFocus API."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        api_prefix: str = DEFAULT_API_PREFIX,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_prefix = api_prefix
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            transport=transport,
            timeout=timeout,
        )

    async def __aenter__(self) -> "DevFocusClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    # ==========================================================================
    # Transport
    # ==========================================================================

    async def _request(
        self,
        method: str,
        path: str,
        ctx: Optional[RequestContext] = None,
        *,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
        prefixed: bool = True,
    ) -> httpx.Response:
        url = f"{self.api_prefix}{path}" if prefixed else path
        headers = ctx.headers() if ctx else {}

        try:
            response = await self._client.request(
                method, url, json=json, params=params, headers=headers
            )
        except httpx.HTTPError as e:
            logger.error("api_request_failed", method=method, path=url, error=str(e))
            raise ExternalServiceError("DevFocus API is unreachable") from e

        if response.is_error:
            error = error_from_response(response)
            logger.info(
                "api_request_rejected",
                method=method,
                path=url,
                status_code=response.status_code,
                code=error.code,
            )
            raise error

        return response

    async def _call(
        self,
        model: type[ModelT],
        method: str,
        path: str,
        ctx: Optional[RequestContext] = None,
        **kwargs: Any,
    ) -> ModelT:
        response = await self._request(method, path, ctx, **kwargs)
        return model.model_validate(response.json())

    # ==========================================================================
    # Auth
    # ==========================================================================

    async def register(self, name: str, email: str, password: str) -> RegisterResponse:
        data = UserCreate(name=name, email=email, password=password)
        return await self._call(RegisterResponse, "POST", "/auth/register", json=dump(data))

    async def verify_otp(self, email: str, otp: str) -> TokenResponse:
        data = OTPVerify(email=email, otp=otp)
        return await self._call(TokenResponse, "POST", "/auth/verify-otp", json=dump(data))

    async def resend_otp(self, email: str) -> MessageResponse:
        data = EmailRequest(email=email)
        return await self._call(MessageResponse, "POST", "/auth/resend-otp", json=dump(data))

    async def login(self, email: str, password: str) -> TokenResponse:
        data = UserLogin(email=email, password=password)
        return await self._call(TokenResponse, "POST", "/auth/login", json=dump(data))

    async def me(self, ctx: RequestContext) -> UserResponse:
        return await self._call(UserResponse, "GET", "/auth/me", ctx)

    async def forgot_password(self, email: str) -> MessageResponse:
        data = EmailRequest(email=email)
        return await self._call(
            MessageResponse, "POST", "/auth/forgot-password", json=dump(data)
        )

    async def verify_reset_otp(self, email: str, otp: str) -> MessageResponse:
        data = OTPVerify(email=email, otp=otp)
        return await self._call(
            MessageResponse, "POST", "/auth/verify-reset-otp", json=dump(data)
        )

    async def reset_password(self, email: str, otp: str, new_password: str) -> MessageResponse:
        data = PasswordReset(email=email, otp=otp, new_password=new_password)
        return await self._call(
            MessageResponse, "POST", "/auth/reset-password", json=dump(data)
        )

    async def change_password(
        self,
        ctx: RequestContext,
        current_password: str,
        new_password: str,
    ) -> MessageResponse:
        data = PasswordChange(current_password=current_password, new_password=new_password)
        return await self._call(
            MessageResponse, "POST", "/auth/change-password", ctx, json=dump(data)
        )

    # ==========================================================================
    # Tasks
    # ==========================================================================

    async def create_task(self, ctx: RequestContext, data: TaskCreate) -> TaskResponse:
        return await self._call(
            TaskResponse, "POST", "/tasks", ctx, json=dump(data, exclude_none=True)
        )

    async def list_tasks(
        self,
        ctx: RequestContext,
        completed: Optional[bool] = None,
    ) -> TaskListResponse:
        params = None if completed is None else {"completed": str(completed).lower()}
        return await self._call(TaskListResponse, "GET", "/tasks", ctx, params=params)

    async def get_task(self, ctx: RequestContext, task_id: UUID) -> TaskResponse:
        return await self._call(TaskResponse, "GET", f"/tasks/{task_id}", ctx)

    async def update_task(
        self,
        ctx: RequestContext,
        task_id: UUID,
        data: TaskUpdate,
    ) -> TaskResponse:
        return await self._call(
            TaskResponse, "PUT", f"/tasks/{task_id}", ctx, json=dump(data, exclude_unset=True)
        )

    async def delete_task(self, ctx: RequestContext, task_id: UUID) -> MessageResponse:
        return await self._call(MessageResponse, "DELETE", f"/tasks/{task_id}", ctx)

    async def increment_task(self, ctx: RequestContext, task_id: UUID) -> TaskResponse:
        return await self._call(TaskResponse, "PUT", f"/tasks/{task_id}/increment", ctx)

    # ==========================================================================
    # Focus Sessions
    # ==========================================================================

    async def open_session(
        self,
        ctx: RequestContext,
        task_id: UUID,
        duration: Optional[int] = None,
    ) -> SessionResponse:
        data = SessionCreate(task_id=task_id)
        if duration is not None:
            data = SessionCreate(task_id=task_id, duration=duration)
        return await self._call(SessionResponse, "POST", "/sessions", ctx, json=dump(data))

    async def complete_session(
        self,
        ctx: RequestContext,
        session_id: UUID,
        notes: Optional[str] = None,
    ) -> SessionCompleteResponse:
        data = SessionComplete(notes=notes)
        return await self._call(
            SessionCompleteResponse,
            "PUT",
            f"/sessions/{session_id}/complete",
            ctx,
            json=dump(data, exclude_none=True),
        )

    async def list_sessions(self, ctx: RequestContext) -> SessionListResponse:
        return await self._call(SessionListResponse, "GET", "/sessions", ctx)

    async def stats(self, ctx: RequestContext) -> StatsResponse:
        return await self._call(StatsResponse, "GET", "/sessions/stats", ctx)

    # ==========================================================================
    # AI
    # ==========================================================================

    async def breakdown(
        self,
        ctx: RequestContext,
        title: str,
        description: Optional[str] = None,
    ) -> list[BreakdownItem]:
        data = BreakdownRequest(title=title, description=description)
        result = await self._call(
            BreakdownResponse, "POST", "/ai/breakdown", ctx, json=dump(data, exclude_none=True)
        )
        return result.breakdown

    async def suggest_break(
        self,
        ctx: RequestContext,
        session_count: int = 1,
        time_of_day: Optional[str] = None,
    ) -> str:
        data = BreakSuggestionRequest(session_count=session_count, time_of_day=time_of_day)
        result = await self._call(
            BreakSuggestionResponse,
            "POST",
            "/ai/suggest-break",
            ctx,
            json=dump(data, exclude_none=True),
        )
        return result.suggestion

    # ==========================================================================
    # Health
    # ==========================================================================

    async def health(self) -> HealthResponse:
        return await self._call(HealthResponse, "GET", "/health", prefixed=False)

    def session_gateway(self, ctx: RequestContext) -> "ClientSessionGateway":
        """Bind this client to a user for the timer."""
        return ClientSessionGateway(self, ctx)


class ClientSessionGateway:
    """Opens and closes focus sessions on behalf of one user's timer."""

    def __init__(self, client: DevFocusClient, ctx: RequestContext):
        self.client = client
        self.ctx = ctx

    async def open_session(self, task_id: UUID) -> UUID:
        session = await self.client.open_session(self.ctx, task_id)
        return session.id

    async def complete_session(self, session_id: UUID, notes: Optional[str] = None) -> None:
        await self.client.complete_session(self.ctx, session_id, notes)
