import os
from datetime import datetime, timezone
from pathlib import Path

from fastapi import APIRouter, FastAPI, Request

from shared.errors import StoreError

APP_VERSION = "1.0.0"


def _git_commit():
    try:
        head = Path(".git/HEAD")
        if not head.exists():
            return "unknown"
        content = head.read_text().strip()
        if content.startswith("ref:"):
            ref_path = Path(".git") / content.split(" ", 1)[1]
            return ref_path.read_text().strip() if ref_path.exists() else "unknown"
        return content
    except OSError:
        return "unknown"


def _store_status(store):
    try:
        problem = store.check()
        if problem:
            return {"records": None, "ok": False, "error": problem}
        return {"records": len(store.read()), "ok": True}
    except StoreError as e:
        return {"records": None, "ok": False, "error": str(e)}


def register_ops_routes(app: FastAPI):
    router = APIRouter(prefix="/api", tags=["ops"])

    @router.get("/health")
    def api_health(request: Request):
        members = _store_status(request.app.state.members)
        gallery = _store_status(request.app.state.gallery)
        status = "ok" if members["ok"] and gallery["ok"] else "degraded"
        return {
            "status": status,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "members": members,
            "gallery": gallery,
            "sheets_sync": request.app.state.sheets.enabled,
        }

    @router.get("/version")
    def api_version():
        return {
            "git_commit": _git_commit(),
            "build_time": os.getenv("BUILD_TIME", datetime.now(timezone.utc).isoformat()),
            "version": APP_VERSION,
        }

    app.include_router(router)
