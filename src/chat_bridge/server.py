"""HTTP front end — /ask, /refresh and /health over a ChatController.

Playwright's sync objects are bound to the thread that created them, so
every browser call (startup init, ask, refresh, shutdown) is funnelled
through one single-thread worker. New /ask calls are shed with 429 while an
exchange is in flight instead of queueing behind it.
"""
import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .engine.errors import BridgeError, BridgeSignal, BusyError

log = logging.getLogger(__name__)


class AskRequest(BaseModel):
    prompt: Optional[str] = None


class AskResponse(BaseModel):
    status: str
    answer: str


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


_STATUS_FOR_SIGNAL = {
    BridgeSignal.BUSY: 429,
    BridgeSignal.AUTH_EXPIRED: 503,
}


def _error_for(exc: Exception) -> JSONResponse:
    if isinstance(exc, BridgeError):
        return _error(_STATUS_FOR_SIGNAL.get(exc.signal, 500), str(exc))
    if isinstance(exc, ValueError):
        return _error(400, str(exc))
    return _error(500, str(exc) or type(exc).__name__)


def build_app(controller, *, api_key: str = "", init_on_startup: bool = True) -> FastAPI:
    """Build the FastAPI app around *controller*.

    When *api_key* is set, every route requires a matching ``X-API-Key``.
    """
    worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="browser")
    inflight = {"ask": False}

    async def run_on_worker(fn, *args):
        return await asyncio.get_running_loop().run_in_executor(worker, fn, *args)

    def _startup_done(future) -> None:
        exc = future.exception()
        if exc is not None:
            log.error("Browser startup failed: %s", exc)
        else:
            log.info("Browser started")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if init_on_startup:
            log.info("Server is active. Starting browser...")
            worker.submit(controller.start).add_done_callback(_startup_done)
        try:
            yield
        finally:
            await run_on_worker(controller.close)
            worker.shutdown(wait=True)

    app = FastAPI(title="chat-bridge", lifespan=lifespan)

    async def check_key(x_api_key: Optional[str] = Header(default=None)) -> None:
        if api_key and x_api_key != api_key:
            raise HTTPException(status_code=401, detail="invalid or missing X-API-Key")

    @app.post("/ask", response_model=AskResponse, dependencies=[Depends(check_key)])
    async def ask(body: AskRequest):
        if not body.prompt or not body.prompt.strip():
            return _error(400, "No prompt provided")
        if inflight["ask"]:
            return _error_for(BusyError("another request is in flight"))
        inflight["ask"] = True
        log.info("Ask request received (%d chars)", len(body.prompt))
        try:
            answer = await run_on_worker(controller.ask, body.prompt)
        except Exception as e:
            if isinstance(e, BridgeError):
                log.error("Ask failed: %s", e)
            else:
                log.exception("Ask crashed")
            return _error_for(e)
        finally:
            inflight["ask"] = False
        return AskResponse(status="success", answer=answer)

    @app.api_route("/refresh", methods=["GET", "POST", "HEAD"], dependencies=[Depends(check_key)])
    async def refresh(request: Request):
        log.info("Refresh requested via %s", request.method)
        if inflight["ask"]:
            return _error_for(BusyError("another request is in flight"))
        try:
            await run_on_worker(controller.refresh)
        except Exception as e:
            log.error("Refresh failed: %s", e)
            return _error_for(e)
        log.info("Browser refreshed successfully")
        if request.method == "HEAD":
            return Response(status_code=200)
        return {"status": "success", "message": "Browser relaunched and session verified."}

    @app.get("/health", dependencies=[Depends(check_key)])
    async def health():
        return controller.status()

    return app
