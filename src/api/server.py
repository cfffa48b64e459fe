"""
FastAPI app exposing the registry service as one action-selected endpoint

    GET  /npi-registry?action=search&country=US&npi=...
    GET  /npi-registry?action=lookup&country=IN&identifier=...
    GET  /npi-registry?action=cached | history
    POST /npi-registry?action=validate   {"country": ..., "userData": {...}}
    POST /npi-registry?action=save       {"provider": {...}, "country": ..., "correctnessScore": ...}

Run with:
    uvicorn src.api.server:create_app --factory --port 8000
    python -m src.cli serve
"""

import json
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src import __version__
from src.api.registry_api import RegistryAPI

GET_ACTIONS = {"search", "lookup", "cached", "history"}
POST_ACTIONS = {"validate", "save"}


def create_app(api: Optional[RegistryAPI] = None) -> FastAPI:
    """Build the FastAPI app around a RegistryAPI (from env by default)"""
    registry_api = api or RegistryAPI.from_env()

    app = FastAPI(
        title="Provider Registry Validator",
        version=__version__,
    )

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.api_route("/npi-registry", methods=["GET", "POST"])
    async def npi_registry(request: Request):
        action = request.query_params.get("action")
        authorization = request.headers.get("Authorization")

        allowed = GET_ACTIONS if request.method == "GET" else POST_ACTIONS
        body = None
        if request.method == "POST":
            raw = await request.body()
            if raw:
                try:
                    body = json.loads(raw)
                except ValueError:
                    return JSONResponse(
                        status_code=400,
                        content={"success": False, "error": "Invalid JSON body", "errorType": "invalid_request"},
                    )

        # Unauthenticated callers get 401 whatever the action
        if action not in allowed:
            status_code, payload = await registry_api.handle(None, authorization)
        else:
            status_code, payload = await registry_api.handle(
                action, authorization, params=dict(request.query_params), body=body
            )

        return JSONResponse(status_code=status_code, content=payload)

    return app

