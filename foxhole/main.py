from fastapi import FastAPI
from fastapi.responses import RedirectResponse
from fastapi.staticfiles import StaticFiles
import logging

from foxhole.api.routes import router
from foxhole.config import load_dotenv_if_present, settings_from_env
from foxhole.runtime import flush_runtime, get_runtime, init_runtime

load_dotenv_if_present()

app = FastAPI(title="foxhole", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=getattr(logging, settings_from_env().log_level, logging.INFO))
logger = logging.getLogger(__name__)

# Serve the browser client (no build step) when it is shipped alongside the server.
from pathlib import Path

_project_root = Path(__file__).resolve().parents[1]

_static_dir = _project_root / "public"
if _static_dir.exists():
    app.mount("/ui", StaticFiles(directory=str(_static_dir), html=True), name="ui")


@app.on_event("startup")
async def _startup() -> None:
    # No-op when tests already initialized the runtime against fakeredis.
    init_runtime()


@app.on_event("shutdown")
async def _shutdown() -> None:
    flush_runtime(get_runtime())


@app.get("/")
async def _root() -> RedirectResponse:
    return RedirectResponse(url="/ui/")


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "foxhole", "version": "0.1.0"}
