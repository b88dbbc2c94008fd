"""Capability endpoints — one route per provider capability.

Each route answers OPTIONS with 204 + CORS headers, rejects any other
method than its own with 405 METHOD_NOT_ALLOWED and hands the JSON body to
the GenerationGateway. Method handling lives here rather than in FastAPI's
method routing so every reply keeps the JSON error envelope.
"""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response

from creative_gateway.core.config import settings
from creative_gateway.core.dependencies import get_gateway
from creative_gateway.gateway.gateway import GenerationGateway
from creative_gateway.gateway.types import Capability, ErrorCode, ProviderName

router = APIRouter(prefix="/api")

ANY_METHOD = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def cors_headers(allowed_method: str) -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": settings.cors_allow_origin or "*",
        "Access-Control-Allow-Methods": f"{allowed_method}, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type, Authorization",
    }


async def _read_json(request: Request) -> Any:
    """Request body as JSON; an empty or invalid body reads as None."""
    try:
        return await request.json()
    except ValueError:
        return None


async def _dispatch(
    request: Request,
    gateway: GenerationGateway,
    capability: Capability,
    provider: ProviderName,
    allowed_method: str = "POST",
    path_params: dict[str, Any] | None = None,
) -> Response:
    headers = cors_headers(allowed_method)
    if request.method == "OPTIONS":
        return Response(status_code=204, headers=headers)
    if request.method != allowed_method:
        return JSONResponse(
            status_code=405,
            content={"error": ErrorCode.METHOD_NOT_ALLOWED.value},
            headers=headers,
        )

    body = await _read_json(request) if allowed_method == "POST" else None
    response = await gateway.execute(capability, provider, body, path_params)
    return JSONResponse(status_code=response.status_code, content=response.to_dict(), headers=headers)


# --- Doubao ---


@router.api_route("/doubao/chat/completions", methods=ANY_METHOD)
async def doubao_chat(request: Request, gateway: GenerationGateway = Depends(get_gateway)):
    """Multimodal chat completions."""
    return await _dispatch(request, gateway, Capability.CHAT, ProviderName.DOUBAO)


@router.api_route("/doubao/images/generate", methods=ANY_METHOD)
async def doubao_image(request: Request, gateway: GenerationGateway = Depends(get_gateway)):
    return await _dispatch(request, gateway, Capability.IMAGE, ProviderName.DOUBAO)


@router.api_route("/doubao/videos/tasks", methods=ANY_METHOD)
async def doubao_video_create(request: Request, gateway: GenerationGateway = Depends(get_gateway)):
    """Create an asynchronous video generation task."""
    return await _dispatch(request, gateway, Capability.VIDEO_CREATE, ProviderName.DOUBAO)


@router.api_route("/doubao/videos/tasks/", methods=ANY_METHOD, include_in_schema=False)
async def doubao_video_status_missing_id(request: Request, gateway: GenerationGateway = Depends(get_gateway)):
    return await _dispatch(
        request, gateway, Capability.VIDEO_STATUS, ProviderName.DOUBAO, "GET", {"task_id": ""}
    )


@router.api_route("/doubao/videos/tasks/{task_id}", methods=ANY_METHOD)
async def doubao_video_status(
    task_id: str,
    request: Request,
    gateway: GenerationGateway = Depends(get_gateway),
):
    """Current status of a video task; poll until terminal."""
    return await _dispatch(
        request, gateway, Capability.VIDEO_STATUS, ProviderName.DOUBAO, "GET", {"task_id": task_id}
    )


# --- Qianfan ---


@router.api_route("/wenxin/chat/completions", methods=ANY_METHOD)
async def wenxin_chat(request: Request, gateway: GenerationGateway = Depends(get_gateway)):
    return await _dispatch(request, gateway, Capability.CHAT, ProviderName.QIANFAN)


# --- Volc TTS ---


@router.api_route("/volc/tts/synthesize", methods=ANY_METHOD)
async def volc_tts(request: Request, gateway: GenerationGateway = Depends(get_gateway)):
    """Speech synthesis; audio comes back base64-encoded."""
    return await _dispatch(request, gateway, Capability.SPEECH, ProviderName.VOLC_TTS)


# --- Health ---


@router.get("/health/ping")
async def ping(gateway: GenerationGateway = Depends(get_gateway)):
    return {
        "ok": True,
        "message": "pong",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "providers": gateway.get_status(),
    }
