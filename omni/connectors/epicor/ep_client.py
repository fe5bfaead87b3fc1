"""Epicor ERP case client.

Logs in through the token resource, then calls the Omni Epicor Function
library (``/api/v2/efx/{company}/{library}/{function}``) for case work.
"""

from dataclasses import dataclass, field
from typing import Optional, Type, TypeVar

import aiohttp

from omni.config import Settings
from omni.connectors.base import ServiceClient
from omni.connectors.epicor.ep_models import (
    AddCaseCommentInput,
    CaseInput,
    CaseState,
    CaseStatus,
    CaseStatusResponse,
    CompleteTaskInput,
    CompleteTaskResponse,
    EpicorBaseModel,
    FunctionResponse,
    GetLastCommentResponse,
    UpdateQuoteInput,
)
from omni.errors import (
    CaseError,
    CaseNotFoundError,
    CaseRequestError,
    CaseSessionExpiredError,
    NoOpenTaskError,
    PartialCompletionError,
    UnexpectedResponseError,
)
from omni.observability import get_logger, with_correlation
from omni.session import Session

logger = get_logger(__name__)

DEFAULT_TOKEN_TTL_SECONDS = 3600

R = TypeVar("R", bound=FunctionResponse)


@dataclass(frozen=True)
class EpicorSession(Session):
    """Session scoped to one Epicor instance."""
    base_url: str = ""
    api_key: str = field(default="", repr=False)


class EpicorClient(ServiceClient):
    """Client for Epicor case operations.

    Usage:
        async with EpicorClient(settings) as client:
            session = await client.authenticate(base_url, api_key, username, password)
            status = await client.get_status(session, 12345)
            await client.complete_task(session, 12345, "jdoe", comment="done")
    """

    service_name = "epicor"

    def __init__(self, settings: Settings):
        super().__init__(timeout_seconds=settings.timeout_seconds)
        self.company = settings.epicor_company
        self.library = settings.epicor_library

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    async def authenticate(self, base_url: str, api_key: str, username: str, password: str) -> EpicorSession:
        """Exchange username/password for a bearer token.

        Raises:
            InvalidCredentialsError: The token resource answered 4xx
            ServiceUnreachableError: Network failure
            UnexpectedResponseError: Any other reply
        """
        base_url = base_url.rstrip("/")
        body = await self._send_auth(
            "POST",
            f"{base_url}/TokenResource.svc/",
            auth=aiohttp.BasicAuth(username, password),
            headers={"X-API-Key": api_key, "Accept": "application/json"},
        )
        token = body.get("AccessToken")
        if not token:
            raise UnexpectedResponseError(self.service_name, 200, "token response did not include an access token")
        ttl = self._token_ttl(body.get("ExpiresIn"), DEFAULT_TOKEN_TTL_SECONDS)

        logger.info("Logged in to Epicor", extra_fields={"ttl_seconds": int(ttl.total_seconds())})
        return EpicorSession(
            service=self.service_name,
            token=token,
            ttl=ttl,
            base_url=base_url,
            api_key=api_key,
        )

    # -------------------------------------------------------------------------
    # Function calls
    # -------------------------------------------------------------------------

    def _function_url(self, session: EpicorSession, function: str) -> str:
        return f"{session.base_url}/api/v2/efx/{self.company}/{self.library}/{function}"

    async def _call(
        self,
        session: EpicorSession,
        function: str,
        payload: EpicorBaseModel,
        response_model: Type[R],
    ) -> R:
        """Call one library function and parse its reply.

        The caller decides what ``Error: true`` means for its function.

        Raises:
            CaseSessionExpiredError: Session ttl elapsed (no request sent)
            CaseRequestError: Transport, HTTP or parse failure
        """
        if session.is_expired():
            raise CaseSessionExpiredError()

        reply = await self._send(
            "POST",
            self._function_url(session, function),
            lambda reason: CaseRequestError(f"Could not reach Epicor: {reason}"),
            json=payload.model_dump(by_alias=True, exclude_none=True),
            headers={
                "Authorization": session.authorization_header,
                "X-API-Key": session.api_key,
                "Content-Type": "application/json; charset=utf-8",
            },
        )

        if reply.status == 404:
            # The function library is likely not published
            raise CaseRequestError(
                f"The {self.library} function library is not published in Epicor. "
                "Please publish the function library and try again.",
                reply.status,
                reply.text,
            )
        if not reply.ok:
            raise CaseRequestError(f"Epicor {function} failed ({reply.status})", reply.status, reply.text)

        try:
            return response_model.model_validate(reply.json())
        except ValueError:
            raise CaseRequestError(f"Epicor {function} returned an unreadable body", reply.status, reply.text)

    # -------------------------------------------------------------------------
    # Case operations
    # -------------------------------------------------------------------------

    async def _read_case(self, session: EpicorSession, case_number: int) -> CaseStatus:
        response = await self._call(session, "GetCaseStatus", CaseInput(case_num=case_number), CaseStatusResponse)
        if response.error:
            raise CaseNotFoundError(case_number, response.message or "")
        return CaseStatus.from_response(case_number, response)

    async def get_status(self, session: EpicorSession, case_number: int) -> CaseStatus:
        """Read the current state of a case, including its last comment.

        Raises:
            CaseNotFoundError: The case number does not resolve
            CaseSessionExpiredError: Session ttl elapsed (no request sent)
            CaseRequestError: Transport or HTTP failure
        """
        status = await self._read_case(session, case_number)
        comment = await self.get_last_comment(session, case_number)
        if comment is None:
            return status
        return status.model_copy(update={"comments": [comment]})

    async def complete_task(
        self,
        session: EpicorSession,
        case_number: int,
        assign_to: str,
        comment: Optional[str] = None,
    ) -> None:
        """Complete the case's current task and assign the next one.

        Two requests: read the case to find its open task, then submit the
        completion. Nothing is submitted when there is no open task.

        Raises:
            NoOpenTaskError: The case has no open task (nothing changed)
            CaseNotFoundError: The case number does not resolve
            PartialCompletionError: The case was read but the completion failed
            CaseSessionExpiredError / CaseRequestError: Reading the case failed
        """
        with with_correlation(case_number=case_number):
            status = await self._read_case(session, case_number)
            if status.status != CaseState.OPEN:
                raise NoOpenTaskError(case_number)
            logger.info(
                f"Completing task '{status.current_task}'",
                extra_fields={"assigned_to": status.assigned_to, "assign_next_to": assign_to},
            )

            payload = CompleteTaskInput(case_num=case_number, assign_next_to_name=assign_to, comment=comment)
            try:
                response = await self._call(session, "CompleteTask", payload, CompleteTaskResponse)
            except CaseError as e:
                logger.error(f"Task completion failed after reading the case: {e}")
                raise PartialCompletionError(case_number, e) from e

            if response.error:
                cause = CaseRequestError(response.describe_failure())
                logger.error(f"Epicor refused the task completion: {cause}")
                raise PartialCompletionError(case_number, cause)

            logger.info("Task completed")

    async def add_comment(self, session: EpicorSession, case_number: int, comment: str) -> None:
        """Append a comment to a case."""
        payload = AddCaseCommentInput(case_num=case_number, comment=comment)
        response = await self._call(session, "AddCaseComment", payload, FunctionResponse)
        if response.error:
            raise CaseRequestError(f"Could not comment on case {case_number}: {response.message or 'unknown error'}")

    async def get_last_comment(self, session: EpicorSession, case_number: int) -> Optional[str]:
        """Most recent comment on a case, or None if it has none."""
        response = await self._call(session, "GetLastComment", CaseInput(case_num=case_number), GetLastCommentResponse)
        if response.error:
            raise CaseRequestError(
                f"Could not read comments for case {case_number}: {response.message or 'unknown error'}"
            )
        return response.comment or None

    async def update_quote(self, session: EpicorSession, case_number: int, quantity: float) -> None:
        """Update the case part quantity and re-attach the quote."""
        payload = UpdateQuoteInput(case_num=case_number, new_quantity=quantity)
        response = await self._call(session, "UpdateCaseQuote", payload, FunctionResponse)
        if response.error:
            raise CaseRequestError(f"Could not update the quote for case {case_number}: {response.message or 'unknown error'}")
