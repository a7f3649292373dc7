from fastapi import APIRouter, Depends
from fastapi.responses import Response

from app.api.deps import get_image_store
from app.services.image_store import LocalImageStore

router = APIRouter()


@router.get("/{image_name}")
async def get_compressed_image(image_name: str, store: LocalImageStore = Depends(get_image_store)):
    # ImageNotFound renders as 404 image_not_found
    data = store.get(image_name)
    return Response(content=data, media_type="image/jpeg")
