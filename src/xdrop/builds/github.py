"""Thin GitHub Actions REST client over the shared httpx client."""

from __future__ import annotations

import re
from typing import Any

import httpx
import structlog

from xdrop.config import Settings
from xdrop.errors import NotConfiguredError, UpstreamError

logger = structlog.get_logger()

ACCEPT = "application/vnd.github.v3+json"
LOG_TAIL_LINES = 80
LOG_TAIL_CHARS = 3000

_TIMESTAMP_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T[\d:.]+Z\s*")
_GROUP_RE = re.compile(r"^##\[group\]")


def extract_step_log(full_log: str, step_name: str) -> str:
    """
    Cut the section belonging to `step_name` out of a job log.

    Capture starts at the first line mentioning the step and stops at the
    next `##[group]` marker. Timestamp prefixes are stripped and only the
    last 80 lines are kept. Falls back to the last 3000 chars of the log.
    """
    captured: list[str] = []
    capturing = False
    for line in full_log.split("\n"):
        if step_name in line:
            capturing = True
        elif capturing and _GROUP_RE.match(line):
            break
        if capturing:
            captured.append(_TIMESTAMP_RE.sub("", line))
    if captured:
        return "\n".join(captured[-LOG_TAIL_LINES:])
    return full_log[-LOG_TAIL_CHARS:]


def map_run_status(run_status: str | None, conclusion: str | None, current: str) -> str:
    """Translate a workflow run's status/conclusion to a build status."""
    if run_status == "queued":
        return "provisioning"
    if run_status == "in_progress":
        return "building"
    if run_status == "completed":
        return "completed" if conclusion == "success" else "failed"
    return current


class GitHubActions:
    """The handful of Actions endpoints the build pipeline needs."""

    def __init__(self, http: httpx.AsyncClient, settings: Settings) -> None:
        if not settings.github_token or not settings.github_repo:
            raise NotConfiguredError("GitHub builds are not configured")
        self._http = http
        self._repo = settings.github_repo
        self._base = f"{settings.github_api_url.rstrip('/')}/repos/{settings.github_repo}/actions"
        self._headers = {"Authorization": f"Bearer {settings.github_token}", "Accept": ACCEPT}
        self._timeout = settings.http_timeout_seconds

    def run_url(self, run_id: int) -> str:
        return f"https://github.com/{self._repo}/actions/runs/{run_id}"

    async def _get_json(self, path: str, **params: Any) -> dict[str, Any]:  # noqa: ANN401
        try:
            response = await self._http.get(
                f"{self._base}{path}", params=params or None, headers=self._headers, timeout=self._timeout
            )
        except httpx.HTTPError as e:
            raise UpstreamError(f"GitHub API unreachable: {e}") from e
        if response.is_error:
            raise UpstreamError(f"GitHub API error: {response.status_code} {response.text}")
        data: dict[str, Any] = response.json()
        return data

    async def dispatch(self, workflow_file: str, ref: str, inputs: dict[str, str]) -> None:
        try:
            response = await self._http.post(
                f"{self._base}/workflows/{workflow_file}/dispatches",
                json={"ref": ref, "inputs": inputs},
                headers=self._headers,
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            raise UpstreamError(f"GitHub API error: {e}") from e
        if response.is_error:
            raise UpstreamError(f"GitHub API error: {response.status_code} {response.text}")

    async def recent_dispatch_runs(self, per_page: int = 10) -> list[dict[str, Any]]:
        data = await self._get_json("/runs", per_page=per_page, event="workflow_dispatch")
        return list(data.get("workflow_runs") or [])

    async def get_run(self, run_id: int) -> dict[str, Any]:
        return await self._get_json(f"/runs/{run_id}")

    async def list_jobs(self, run_id: int) -> list[dict[str, Any]]:
        data = await self._get_json(f"/runs/{run_id}/jobs")
        return list(data.get("jobs") or [])

    async def list_artifacts(self, run_id: int) -> list[dict[str, Any]]:
        data = await self._get_json(f"/runs/{run_id}/artifacts")
        return list(data.get("artifacts") or [])

    async def job_log(self, job_id: int) -> str:
        response = await self._http.get(
            f"{self._base}/jobs/{job_id}/logs",
            headers=self._headers,
            timeout=self._timeout,
            follow_redirects=True,
        )
        if response.is_error:
            raise UpstreamError(f"GitHub log fetch failed: {response.status_code}")
        return response.text

    async def open_artifact(self, url: str) -> httpx.Response:
        """Start a streamed artifact download. The caller must close the response."""
        request = self._http.build_request("GET", url, headers=self._headers, timeout=self._timeout)
        try:
            response = await self._http.send(request, stream=True, follow_redirects=True)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Failed to download artifact from GitHub: {e}") from e
        if response.is_error:
            await response.aclose()
            raise UpstreamError("Failed to download artifact from GitHub")
        return response
