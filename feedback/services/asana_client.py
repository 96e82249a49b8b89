"""Asana task creation client."""

import logging
from typing import Optional, Protocol

import httpx

from ..exceptions import TaskCreationError

logger = logging.getLogger(__name__)


class TaskClient(Protocol):
    """Anything that can create a task and return its identifier."""

    def create_task(
        self, title: str, notes: str, timeout: Optional[float] = None
    ) -> str:
        ...


class AsanaClient:
    """Create tasks in a single Asana project."""

    DEFAULT_BASE_URL = "https://app.asana.com/api/1.0"

    def __init__(
        self,
        token: str,
        workspace_gid: str,
        project_gid: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        http_client: Optional[httpx.Client] = None,
    ):
        """Initialize Asana client.

        Args:
            token: Personal access token
            workspace_gid: Workspace the task is created in
            project_gid: Project the task is added to
            base_url: API root, overridable for tests
            timeout: Default request timeout in seconds
            http_client: Shared httpx client; one is created per call if omitted
        """
        self.token = token
        self.workspace_gid = workspace_gid
        self.project_gid = project_gid
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http_client = http_client

    def build_task_request(self, title: str, notes: str) -> dict:
        """Build the JSON body for a task creation request."""
        return {
            "data": {
                "workspace": self.workspace_gid,
                "name": title,
                "notes": notes,
                "completed": False,
                "projects": [self.project_gid],
            }
        }

    def create_task(
        self, title: str, notes: str, timeout: Optional[float] = None
    ) -> str:
        """Create a task and return its gid.

        Args:
            title: Task name
            notes: Task body
            timeout: Upper bound for this call, capped by the client default

        Returns:
            The gid Asana assigned to the task

        Raises:
            TaskCreationError: on transport errors, non-2xx responses or
                a response without a task gid
        """
        url = f"{self.base_url}/tasks"
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }
        payload = self.build_task_request(title, notes)
        request_timeout = self.timeout if timeout is None else min(timeout, self.timeout)

        logger.debug(f"Creating Asana task '{title}' in project {self.project_gid}")

        try:
            if self.http_client is not None:
                response = self.http_client.post(
                    url, json=payload, headers=headers, timeout=request_timeout
                )
            else:
                with httpx.Client(timeout=request_timeout) as client:
                    response = client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            logger.error("Asana request timed out")
            raise TaskCreationError("Asana request timed out") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(f"Asana request failed: {e}")
            raise TaskCreationError(f"Asana request failed: {e}") from e

        if not response.is_success:
            error_msg = self._error_message(response)
            logger.error(f"Asana HTTP error: {error_msg}")
            raise TaskCreationError(error_msg, status_code=response.status_code)

        return self._parse_task_gid(response)

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        error_msg = f"Asana API returned HTTP {response.status_code}"
        try:
            error_data = response.json()
        except ValueError:
            body = response.text[:200]
            return f"{error_msg}: {body}" if body else error_msg

        errors = error_data.get("errors") if isinstance(error_data, dict) else None
        if errors:
            messages = [
                e.get("message", "") for e in errors if isinstance(e, dict)
            ]
            messages = [m for m in messages if m]
            if messages:
                error_msg = f"{error_msg}: {', '.join(messages)}"
        return error_msg

    @staticmethod
    def _parse_task_gid(response: httpx.Response) -> str:
        try:
            result = response.json()
        except ValueError as e:
            raise TaskCreationError(
                "Failed to decode Asana response", status_code=response.status_code
            ) from e

        data = result.get("data") if isinstance(result, dict) else None
        gid = data.get("gid") if isinstance(data, dict) else None
        if not isinstance(gid, str) or not gid:
            raise TaskCreationError(
                "Asana response did not contain a task gid",
                status_code=response.status_code,
            )
        return gid
