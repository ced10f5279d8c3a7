from typing import Optional

from fastapi import APIRouter, HTTPException, Request, Response, status
from fastapi.concurrency import run_in_threadpool

from vrm_bridge.converter import MalformedContainer, NoSkeletonFound, PersistFailure
from vrm_bridge.models import ConversionRequest
from vrm_bridge.services.conversion import ConversionService

router = APIRouter()

VRM_MEDIA_TYPE = "model/gltf-binary"


def _header_value(value: str) -> str:
    # Header values must be latin-1 encodable.
    return value.encode("latin-1", "replace").decode("latin-1")


@router.get("/health", status_code=status.HTTP_200_OK)
async def health() -> dict[str, str]:
    """Simple liveness probe."""
    return {"status": "ok"}


@router.post("/convert-vrm", status_code=status.HTTP_200_OK)
async def convert_vrm(
    request: Request,
    avatar_name: str = "Converted Avatar",
    author: Optional[str] = None,
    version: str = "1.0",
    save: bool = False,
) -> Response:
    """Convert a raw GLB request body into a VRM 1.0 avatar."""
    body = await request.body()
    service = ConversionService()
    try:
        conversion = ConversionRequest(avatar_name=avatar_name, author=author, version=version, save=save)
        result = await run_in_threadpool(service.convert, body, conversion)
    except (MalformedContainer, NoSkeletonFound, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except PersistFailure as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    headers = {
        "X-VRM-Warnings": _header_value("; ".join(result.warnings)),
        "X-VRM-Bones-Mapped": str(result.mapped_bones),
    }
    if result.saved_path:
        headers["X-VRM-Saved-Path"] = _header_value(result.saved_path)

    return Response(content=result.vrm, media_type=VRM_MEDIA_TYPE, headers=headers)
