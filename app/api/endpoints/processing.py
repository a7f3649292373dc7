from fastapi import APIRouter, Depends

from app.api.deps import get_repository
from app.core.errors import RequestNotFound
from app.services.request_repository import RequestRepository

router = APIRouter()


@router.get("/requests/{request_id}")
async def get_request_status(request_id: str, repository: RequestRepository = Depends(get_repository)):
    request = repository.get(request_id)
    if request is None:
        raise RequestNotFound(request_id)
    return request.to_document()
