"""
Mobile build pipeline on GitHub Actions.

A build row is created per trigger and the platform workflow is dispatched
with `inputs.build_id`. The dispatch API does not return a run id, so the
run is discovered on the first log poll:

1. a recent `workflow_dispatch` run whose title carries the build id wins;
2. otherwise the first run with the platform workflow's name created within
   the match window of the build, skipping runs another build already owns.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any

import httpx
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from xdrop.builds.github import GitHubActions, extract_step_log, map_run_status
from xdrop.builds.schemas import JobInfo, StepInfo
from xdrop.config import get_settings
from xdrop.db.models import Build
from xdrop.errors import NotFoundError, ServiceError, UpstreamError
from xdrop.timeutil import as_utc, parse_iso, utcnow

logger = structlog.get_logger()

PLATFORMS = ("android", "ios")
RECENT_RUNS = 10
WAITING_MESSAGE = "Waiting for GitHub Actions to pick up the build..."
FAILED_MESSAGE = "Build failed. Check logs for details."


def workflow_for(platform: str) -> tuple[str, str]:
    """(workflow file, run display name) for a platform."""
    settings = get_settings()
    if platform == "android":
        return settings.github_android_workflow, settings.github_android_run_name
    return settings.github_ios_workflow, settings.github_ios_run_name


def match_run(build: Build, runs: list[dict[str, Any]], claimed: set[int]) -> int | None:
    """Pick the workflow run that belongs to `build`, if any."""
    _, run_name = workflow_for(build.platform)
    window = timedelta(seconds=get_settings().github_run_match_window_seconds)
    created = as_utc(build.created_at)

    candidates = [r for r in runs if r.get("id") is not None and int(r["id"]) not in claimed]
    for run in candidates:
        if build.id in (run.get("display_title") or ""):
            return int(run["id"])
    for run in candidates:
        if run.get("name") != run_name or not run.get("created_at"):
            continue
        if abs(parse_iso(run["created_at"]) - created) < window:
            return int(run["id"])
    return None


async def get_user_build(db: AsyncSession, user_id: str, build_id: str) -> Build:
    build = await db.get(Build, build_id)
    if build is None or build.user_id != user_id:
        raise NotFoundError("Build not found")
    return build


async def list_builds(db: AsyncSession, user_id: str) -> list[Build]:
    result = await db.execute(select(Build).where(Build.user_id == user_id).order_by(Build.created_at.desc()))
    return list(result.scalars().all())


async def trigger_build(db: AsyncSession, http: httpx.AsyncClient, user_id: str, platform: str) -> Build:
    """Create a build row and dispatch its workflow.

    On dispatch failure the row stays as `failed` and UpstreamError is raised;
    the caller is expected to commit before translating the error.
    """
    if platform not in PLATFORMS:
        raise ServiceError("Invalid platform")
    settings = get_settings()
    github = GitHubActions(http, settings)

    build = Build(user_id=user_id, platform=platform, status="pending")
    db.add(build)
    await db.flush()

    workflow_file, _ = workflow_for(platform)
    try:
        await github.dispatch(workflow_file, settings.github_ref, {"build_id": build.id})
    except UpstreamError as e:
        build.status = "failed"
        build.error_message = str(e)
        build.completed_at = utcnow()
        await db.flush()
        logger.warning("build_dispatch_failed", build_id=build.id, error=str(e))
        raise

    build.status = "provisioning"
    await db.flush()
    logger.info("build_dispatched", build_id=build.id, platform=platform, workflow=workflow_file)
    return build


async def _resolve_run_id(db: AsyncSession, github: GitHubActions, build: Build) -> int | None:
    if build.github_run_id:
        return build.github_run_id
    try:
        runs = await github.recent_dispatch_runs(RECENT_RUNS)
    except UpstreamError as e:
        logger.warning("build_run_lookup_failed", build_id=build.id, error=str(e))
        return None

    claimed_rows = await db.execute(
        select(Build.github_run_id).where(Build.github_run_id.is_not(None), Build.id != build.id)
    )
    run_id = match_run(build, runs, {int(r) for r in claimed_rows.scalars().all()})
    if run_id is not None:
        build.github_run_id = run_id
        await db.flush()
        logger.info("build_run_matched", build_id=build.id, run_id=run_id)
    return run_id


async def _job_info(github: GitHubActions, job: dict[str, Any]) -> JobInfo:
    steps = [
        StepInfo(name=s.get("name", ""), status=s.get("status"), conclusion=s.get("conclusion"), number=s.get("number"))
        for s in job.get("steps") or []
    ]
    failed_step_log = None
    if job.get("conclusion") == "failure" or job.get("status") == "completed":
        failed = next((s for s in steps if s.conclusion == "failure"), None)
        if failed is not None:
            try:
                failed_step_log = extract_step_log(await github.job_log(job["id"]), failed.name)
            except (httpx.HTTPError, UpstreamError) as e:
                logger.warning("build_job_log_failed", job_id=job.get("id"), error=str(e))
                failed_step_log = f"Could not fetch detailed logs: {e}"
    return JobInfo(
        name=job.get("name", ""),
        status=job.get("status"),
        conclusion=job.get("conclusion"),
        started_at=job.get("started_at"),
        completed_at=job.get("completed_at"),
        steps=steps,
        failed_step_log=failed_step_log,
    )


async def _sync_run_status(github: GitHubActions, build: Build, run_id: int) -> None:
    try:
        run = await github.get_run(run_id)
    except UpstreamError as e:
        logger.warning("build_run_status_failed", build_id=build.id, error=str(e))
        return

    status = map_run_status(run.get("status"), run.get("conclusion"), build.status)
    if status in ("completed", "failed") and build.completed_at is None:
        build.completed_at = utcnow()
    if status == "failed" and run.get("conclusion") == "failure":
        build.error_message = FAILED_MESSAGE
    if status == "completed" and not build.artifact_url:
        try:
            artifacts = await github.list_artifacts(run_id)
        except UpstreamError as e:
            logger.warning("build_artifacts_failed", build_id=build.id, error=str(e))
            artifacts = []
        if artifacts:
            build.artifact_url = artifacts[0].get("archive_download_url")
    if status != build.status:
        logger.info("build_status_changed", build_id=build.id, old=build.status, new=status)
    build.status = status


async def fetch_build_logs(
    db: AsyncSession, http: httpx.AsyncClient, user_id: str, build_id: str
) -> tuple[Build, list[JobInfo], str | None]:
    """Jobs/steps for the build's run and the run URL; ([] , None) while waiting."""
    build = await get_user_build(db, user_id, build_id)
    github = GitHubActions(http, get_settings())

    run_id = await _resolve_run_id(db, github, build)
    if run_id is None:
        return build, [], None

    jobs = [await _job_info(github, job) for job in await github.list_jobs(run_id)]
    await _sync_run_status(github, build, run_id)
    await db.flush()
    return build, jobs, github.run_url(run_id)


async def open_build_artifact(
    db: AsyncSession, http: httpx.AsyncClient, user_id: str, build_id: str
) -> tuple[httpx.Response, str]:
    """Streamed artifact response plus the download filename."""
    build = await get_user_build(db, user_id, build_id)
    if not build.artifact_url:
        raise NotFoundError("No artifact available")
    github = GitHubActions(http, get_settings())
    response = await github.open_artifact(build.artifact_url)
    return response, f"xdrop-{build.platform}-{build.id[:8]}.zip"
