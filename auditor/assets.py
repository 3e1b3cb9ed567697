"""Download a named asset from a repository's latest release."""

from __future__ import annotations

import logging
from pathlib import Path

from auditor.github_api import GitHubClient

logger = logging.getLogger(__name__)


class AssetNotFoundError(Exception):
    """No release exists, or the latest release lacks the asset."""


class AssetDownloadError(Exception):
    """The asset download request did not succeed."""


async def get_latest_release_asset_url(repo: str, asset_name: str, github: GitHubClient) -> str:
    owner, _, repo_name = repo.partition("/")
    releases = await github.list_releases(owner, repo_name)

    if not releases:
        raise AssetNotFoundError("No releases found")

    latest_release = releases[0]
    asset = next(
        (a for a in latest_release.get("assets", []) if a.get("name") == asset_name),
        None,
    )
    if asset is None:
        raise AssetNotFoundError(f"Asset {asset_name} not found in the latest release")

    return asset["browser_download_url"]


async def download_file(url: str, output_path: Path, github: GitHubClient) -> None:
    resp = await github.download(url)
    if not resp.is_success:
        raise AssetDownloadError(f"Failed to fetch {url}: {resp.status_code} {resp.reason_phrase}")
    Path(output_path).write_bytes(resp.content)


async def download_asset(
    repo: str,
    asset_name: str,
    output_path: Path,
    github_token: str,
    github: GitHubClient | None = None,
) -> bool:
    """Fetch ``asset_name`` from the latest release of ``repo`` into ``output_path``.

    Never raises: any failure is logged and reported as False so the caller
    can carry on without the asset.
    """
    client = github or GitHubClient(github_token)
    try:
        asset_url = await get_latest_release_asset_url(repo, asset_name, client)
        await download_file(asset_url, output_path, client)
        logger.info("Downloaded %s from %s to %s", asset_name, repo, output_path)
        return True
    except Exception as e:
        logger.warning("Could not download %s from %s: %s", asset_name, repo, e)
        return False
    finally:
        if github is None:
            await client.aclose()
