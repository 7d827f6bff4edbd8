from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Union

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from quizai.bootstrap import build_app
from quizai.config_store import mask_secret, validate_config
from quizai.core.errors import ApiError, NotConfiguredError, PersistenceError, ProviderError
from quizai.core.models import Question


class QuestionIn(BaseModel):
    title: str
    body: str
    options: List[str] = []
    correct_answer: Union[str, List[str]] = ""
    explanation: Optional[str] = None


class AskRequest(BaseModel):
    message: str
    question: Optional[QuestionIn] = None
    title: Optional[str] = None
    body: Optional[str] = None
    submitted: bool = False


class ConfigUpdate(BaseModel):
    provider: Optional[str] = None
    api_key: Optional[str] = None
    model: Optional[str] = None
    endpoint: Optional[str] = None
    disclosure_policy: Optional[str] = None


def create_app(config_path: Path, *, http_client: Optional[httpx.Client] = None) -> FastAPI:
    ctx = build_app(Path(config_path), http_client=http_client)
    store = ctx["config_store"]
    client = ctx["client"]

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        client.close()

    app = FastAPI(title="quizai", lifespan=lifespan)
    app.state.cfg = ctx["cfg"]
    app.state.config_store = store
    app.state.client = client

    @app.exception_handler(NotConfiguredError)
    def _not_configured(_req: Request, exc: NotConfiguredError):
        return JSONResponse({"detail": str(exc)}, status_code=400)

    @app.exception_handler(ProviderError)
    def _provider_error(_req: Request, exc: ProviderError):
        payload = {"detail": str(exc)}
        if isinstance(exc, ApiError):
            payload["status"] = exc.status
        return JSONResponse(payload, status_code=502)

    @app.exception_handler(PersistenceError)
    def _persistence_error(_req: Request, exc: PersistenceError):
        return JSONResponse({"detail": str(exc)}, status_code=500)

    def _context_call(req: AskRequest, *, stream: bool):
        if not req.message.strip():
            raise HTTPException(status_code=400, detail="Empty message")
        if req.question is not None:
            quiz = Question(**req.question.model_dump())
            if stream:
                return client.ask_about_question_with_context_stream(req.message, quiz, req.submitted)
            return client.ask_about_question_with_context(req.message, quiz, req.submitted)
        if req.title:
            if stream:
                return client.ask_about_question_stream(req.message, req.title, req.body or "")
            return client.ask_about_question(req.message, req.title, req.body or "")
        return client.chat_stream(req.message) if stream else client.chat(req.message)

    @app.get("/api/config")
    def api_config():
        current = store.get()
        return {
            "provider": current.provider,
            "model": current.model,
            "endpoint": current.endpoint,
            "disclosure_policy": current.disclosure_policy,
            "api_key": mask_secret(current.credential) if current.credential else None,
            "configured": store.is_configured(current),
            "errors": validate_config(current),
        }

    @app.put("/api/config")
    def api_update_config(update: ConfigUpdate):
        changes = update.model_dump(exclude_none=True)
        if "api_key" in changes:
            changes["credential"] = changes.pop("api_key")
        updated = replace(store.get(), **changes)
        errors = validate_config(updated)
        if errors:
            return JSONResponse({"errors": errors}, status_code=422)
        store.set(updated)
        return {"saved": True}

    @app.post("/api/ask")
    def api_ask(req: AskRequest):
        result = _context_call(req, stream=False)
        usage = result.usage
        return {
            "reply": result.text,
            "usage": None if usage is None else {
                "prompt_tokens": usage.prompt_tokens,
                "completion_tokens": usage.completion_tokens,
                "total_tokens": usage.total_tokens,
            },
        }

    @app.post("/api/stream")
    def api_stream(req: AskRequest):
        result = _context_call(req, stream=True)

        def gen():
            with result:
                try:
                    for chunk in result.chunks:
                        yield chunk
                except ProviderError as e:
                    yield f"\n[error] {e}"

        return StreamingResponse(gen(), media_type="text/plain")

    return app


def run(
    *,
    config: Path,
    host: str = "127.0.0.1",
    port: int = 8000,
) -> None:
    import uvicorn

    app = create_app(config)
    uvicorn.run(app, host=host, port=port)
