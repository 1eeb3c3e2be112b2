import logging

from fastapi import APIRouter, FastAPI, File, Form, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from veritas_artifacts.auth import build_intent_message, normalize_address, verify_intent
from veritas_artifacts.config import Settings
from veritas_artifacts.content_store import ContentStore, build_content_store
from veritas_artifacts.errors import InvalidInputError, VeritasError
from veritas_artifacts.ledger import AlgorandLedger, Ledger
from veritas_artifacts.logging_setup import configure_logging
from veritas_artifacts.models import ArtifactPayload, ArtifactStatus, SubmissionIntent
from veritas_artifacts.review import ReviewOrchestrator
from veritas_artifacts.uploader import ContentUploader

logger = logging.getLogger(__name__)

STATUS_FILTERS = {
    "all": None,
    "pending": ArtifactStatus.PENDING,
    "approved": ArtifactStatus.APPROVED,
    "rejected": ArtifactStatus.REJECTED,
}

# ── All routes are under /api prefix ──────────────────────────────────────────
router = APIRouter(prefix="/api")


@router.get("/intent-message")
async def intent_message():
    """A fresh intent message for the wallet to sign before uploading."""
    return {"message": build_intent_message()}


@router.post("/upload")
async def upload_artifact(
    request: Request,
    file: UploadFile | None = File(None),
    claimedAddress: str | None = Form(None),
    signature: str | None = Form(None),
    signedMessage: str | None = Form(None),
):
    """
    Verify the signed intent, then relay the file to the content store.
    Nothing leaves this service unless the signature recovers to the
    claimed address.
    """
    if file is None or not claimedAddress or not signature or not signedMessage:
        raise InvalidInputError("Missing required fields")

    address = verify_intent(
        SubmissionIntent(message=signedMessage, signature=signature, address=claimedAddress)
    )

    uploader: ContentUploader = request.app.state.uploader
    if file.size is not None and file.size > uploader.max_bytes:
        raise InvalidInputError(f"File is {file.size} bytes; the limit is {uploader.max_bytes}")

    data = await file.read()
    payload = ArtifactPayload(
        filename=file.filename or "",
        content_type=file.content_type or "",
        data=data,
    )
    stored = await uploader.upload(payload, address)
    return {"contentId": stored.content_id, "retrievalUrl": stored.retrieval_url}


@router.get("/fee")
async def upload_fee(request: Request):
    ledger: Ledger = request.app.state.ledger
    return {"fee": await ledger.get_fee()}


@router.get("/artifacts")
async def list_artifacts(request: Request, status: str = "all"):
    if status not in STATUS_FILTERS:
        raise InvalidInputError(f"Unknown status filter {status!r}; use one of {sorted(STATUS_FILTERS)}")
    review: ReviewOrchestrator = request.app.state.review
    artifacts = await review.list_by_status(STATUS_FILTERS[status])
    return {"count": len(artifacts), "artifacts": [a.to_dict() for a in artifacts]}


@router.get("/artifacts/{artifact_id}")
async def get_artifact(request: Request, artifact_id: int):
    review: ReviewOrchestrator = request.app.state.review
    artifact = await review.get_artifact(artifact_id)
    return artifact.to_dict()


@router.get("/managers/{address}")
async def manager_status(request: Request, address: str):
    ledger: Ledger = request.app.state.ledger
    address = normalize_address(address)
    return {"address": address, "isManager": await ledger.is_manager(address)}


@router.get("/tokens/{token_id}")
async def token_owner(request: Request, token_id: int):
    review: ReviewOrchestrator = request.app.state.review
    return {"tokenId": token_id, "owner": await review.token_owner(token_id)}


@router.get("/accounts/{address}/tokens")
async def token_balance(request: Request, address: str):
    review: ReviewOrchestrator = request.app.state.review
    address = normalize_address(address)
    return {"address": address, "balance": await review.token_balance(address)}


@router.get("/treasury")
async def treasury(request: Request):
    review: ReviewOrchestrator = request.app.state.review
    return {"treasury": await review.treasury()}


async def veritas_error_handler(request: Request, exc: VeritasError) -> JSONResponse:
    logger.info("[API] %s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.http_status, content={"error": exc.message, "code": exc.code})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("[API] %s %s failed", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Request failed", "code": "internal_error"})


def create_app(
    settings: Settings | None = None,
    ledger: Ledger | None = None,
    store: ContentStore | None = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = FastAPI(title="Veritas Artifacts API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.ledger = ledger or AlgorandLedger.from_settings(settings)
    app.state.uploader = ContentUploader(store or build_content_store(settings), settings.max_upload_bytes)
    app.state.review = ReviewOrchestrator(app.state.ledger)

    app.add_exception_handler(VeritasError, veritas_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    @app.get("/")
    async def root():
        return {
            "status": "ok",
            "message": "Veritas Artifacts API is running",
            "app_id": settings.app_id,
            "endpoints": [
                "/api/intent-message",
                "/api/upload",
                "/api/fee",
                "/api/artifacts",
                "/api/managers/{address}",
                "/api/tokens/{token_id}",
                "/api/accounts/{address}/tokens",
                "/api/treasury",
            ],
        }

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
