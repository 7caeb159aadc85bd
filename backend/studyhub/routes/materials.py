"""
StudyHub Backend - Material Route Handlers
==========================================

What:  HTTP surface of the material resource under the /api prefix.
How:   Extracts path/query/body values, delegates to MaterialService,
       returns the service's response model. Status codes other than 200
       (201 on create) and every error body come from the service's
       exceptions through the global handlers in main.py.
Who:   The catalog front end and moderation tools.

Endpoints:
    POST   /api/materials                       create            201 | 400 | 409
    GET    /api/materials                       list              200
    GET    /api/materials/type/{materialType}   list by type      200 | 400
    POST   /api/materials/upvote                toggle upvote     200 | 400 | 404
    GET    /api/materials/{id}                  get one           200 | 400 | 404
    PUT    /api/materials/{id}                  update            200 | 400 | 404 | 409
    PATCH  /api/materials/{id}                  update            200 | 400 | 404 | 409
    DELETE /api/materials/{id}                  delete            200 | 400 | 404

Query values are received as raw strings and parsed by the service, so a
garbage `page` or `limit` falls back to its default instead of failing.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, Response, status

from studyhub.schemas.material import (
    ErrorResponse,
    MaterialEnvelope,
    MaterialListResponse,
    MaterialResponse,
    MessageResponse,
    UpvoteResponse,
)
from studyhub.services.material_service import MaterialService, get_material_service

router = APIRouter(prefix="/api", tags=["Materials"])

_ERRORS_400 = {400: {"description": "Validation failed", "model": ErrorResponse}}
_ERRORS_404 = {404: {"description": "Material not found", "model": ErrorResponse}}
_ERRORS_409 = {409: {"description": "Material link already exists", "model": ErrorResponse}}


def _list_query(
    page: Optional[str],
    limit: Optional[str],
    material_type: Optional[str] = None,
    semester: Optional[str] = None,
    branch: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "page": page,
        "limit": limit,
        "materialType": material_type,
        "semester": semester,
        "branch": branch,
    }


@router.post(
    "/materials",
    response_model=MaterialEnvelope,
    status_code=status.HTTP_201_CREATED,
    responses={**_ERRORS_400, **_ERRORS_409},
    summary="Create a material",
)
async def create_material(
    payload: Dict[str, Any] = Body(...),
    service: MaterialService = Depends(get_material_service),
) -> MaterialEnvelope:
    """
    Validates the body, canonicalizes the thumbnail share link and stores
    the material. `featured` accepts booleans and true/false words.
    """
    return await service.create(payload)


@router.get(
    "/materials",
    response_model=MaterialListResponse,
    summary="List materials, newest first",
)
async def list_materials(
    response: Response,
    page: Optional[str] = Query(default=None, description="Page number, default 1"),
    limit: Optional[str] = Query(default=None, description="Page size, default 20, max 100"),
    material_type: Optional[str] = Query(default=None, alias="materialType"),
    semester: Optional[str] = Query(default=None, description="Semester 1-8"),
    branch: Optional[str] = Query(default=None, description="Branch the material applies to"),
    service: MaterialService = Depends(get_material_service),
) -> MaterialListResponse:
    result = await service.list(_list_query(page, limit, material_type, semester, branch))
    response.headers["X-Total-Count"] = str(result.pagination.total_materials)
    return result


@router.get(
    "/materials/type/{materialType}",
    response_model=MaterialListResponse,
    responses=_ERRORS_400,
    summary="List materials of one type",
)
async def list_materials_by_type(
    materialType: str,
    response: Response,
    page: Optional[str] = Query(default=None),
    limit: Optional[str] = Query(default=None),
    service: MaterialService = Depends(get_material_service),
) -> MaterialListResponse:
    result = await service.list_by_type(materialType, _list_query(page, limit))
    response.headers["X-Total-Count"] = str(result.pagination.total_materials)
    return result


@router.post(
    "/materials/upvote",
    response_model=UpvoteResponse,
    responses={**_ERRORS_400, 404: {"description": "User or material not found", "model": ErrorResponse}},
    summary="Toggle an upvote",
)
async def upvote_material(
    payload: Dict[str, Any] = Body(...),
    service: MaterialService = Depends(get_material_service),
) -> UpvoteResponse:
    """
    Body: `{"materialId": "...", "email": "..."}`. The first call by a
    verified user adds the upvote; the next call removes it.
    """
    return await service.upvote(payload)


@router.get(
    "/materials/{id}",
    response_model=MaterialResponse,
    responses={**_ERRORS_400, **_ERRORS_404},
    summary="Get a material by id",
)
async def get_material(
    id: str,
    service: MaterialService = Depends(get_material_service),
) -> MaterialResponse:
    return await service.get_one(id)


@router.put(
    "/materials/{id}",
    response_model=MaterialEnvelope,
    responses={**_ERRORS_400, **_ERRORS_404, **_ERRORS_409},
    summary="Update a material",
)
@router.patch(
    "/materials/{id}",
    response_model=MaterialEnvelope,
    responses={**_ERRORS_400, **_ERRORS_404, **_ERRORS_409},
    summary="Partially update a material",
)
async def update_material(
    id: str,
    payload: Dict[str, Any] = Body(...),
    service: MaterialService = Depends(get_material_service),
) -> MaterialEnvelope:
    """
    Only supplied fields are changed. Store-managed keys (`_id`,
    `createdAt`, `updatedAt`) and `upvotes` are ignored.
    """
    return await service.update(id, payload)


@router.delete(
    "/materials/{id}",
    response_model=MessageResponse,
    responses={**_ERRORS_400, **_ERRORS_404},
    summary="Delete a material",
)
async def delete_material(
    id: str,
    service: MaterialService = Depends(get_material_service),
) -> MessageResponse:
    return await service.delete(id)
