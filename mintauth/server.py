"""
HTTP surface for the mint authorization service.

Run with ``mintauth serve`` or ``uvicorn --factory mintauth.server:create_app``.
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from .config import ServiceConfig
from .exceptions import RejectionCode
from .service import AuthorizationService
from .version import __version__

logger = logging.getLogger(__name__)


def create_app(
    service: Optional[AuthorizationService] = None,
    config: Optional[ServiceConfig] = None
) -> FastAPI:
    """
    Create the FastAPI application.

    The service (and with it the signing key) is built once here, so a
    misconfigured key or ledger fails at startup rather than on the first
    request.

    Args:
        service: Prebuilt service (tests)
        config: Configuration used when no service is given (defaults to env)

    Returns:
        FastAPI application
    """
    if service is None:
        service = AuthorizationService.from_config(config or ServiceConfig.from_env())

    app = FastAPI(title="Mint Authorization API", version=__version__)
    app.state.service = service

    @app.post("/mint-authorization")
    async def mint_authorization(request: Request):
        try:
            body = await request.json()
        except ValueError:
            return JSONResponse(
                status_code=400,
                content={"error": "Request body must be valid JSON", "code": RejectionCode.INVALID_REQUEST.value}
            )
        # Ledger, storage and signing calls block
        result = await run_in_threadpool(service.authorize, body)
        return JSONResponse(status_code=result.status_code, content=result.body)

    @app.get("/healthz")
    def health():
        return {
            "ok": True,
            "signer": service.authority.address,
            "chainId": service.authority.domain.chain_id,
            "collection": service.authority.domain.verifying_contract,
        }

    return app
