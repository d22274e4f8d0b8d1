"""Installed browser discovery endpoint."""

from fastapi import APIRouter

from do_in_time.dependencies import BrowserLauncherDep
from do_in_time.models.api import InstalledBrowsersResponse

router = APIRouter(tags=["browsers"])


@router.get("/api/browsers")
async def get_installed_browsers(launcher: BrowserLauncherDep) -> InstalledBrowsersResponse:
    """Return the browsers that can be launched and the system default."""
    return InstalledBrowsersResponse(
        browsers=launcher.installed_browsers(),
        default=await launcher.default_browser(),
    )
