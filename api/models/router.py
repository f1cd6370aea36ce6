"""
Model API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Query, Request
from fastapi.responses import JSONResponse

from . import schemas, service

router = APIRouter()


def get_model_service(request: Request) -> service.ModelService:
    return request.app.state.model_service


def _respond(response: schemas.ServiceResponse) -> JSONResponse:
    return JSONResponse(status_code=response.status, content=response.to_dict())


@router.get("/", response_model=None)
async def list_models(
    page: str = Query(default=""),
    limit: str = Query(default=""),
    model_service: service.ModelService = Depends(get_model_service),
) -> JSONResponse:
    """
    List models oldest first, `limit` per page (default 30).
    """
    return _respond(await model_service.get(page, limit))


@router.put("/create", response_model=None, status_code=201)
async def create_model(
    payload: schemas.ModelInput,
    model_service: service.ModelService = Depends(get_model_service),
) -> JSONResponse:
    return _respond(await model_service.create(payload.to_model()))


@router.get("/{model_id}", response_model=None)
async def get_model(
    model_id: str,
    model_service: service.ModelService = Depends(get_model_service),
) -> JSONResponse:
    return _respond(await model_service.get_by_id(model_id))


@router.post("/{model_id}/update", response_model=None)
async def update_model(
    model_id: str,
    payload: schemas.ModelInput | None = Body(default=None),
    model_service: service.ModelService = Depends(get_model_service),
) -> JSONResponse:
    """
    Set only the fields present in the body; an empty body is rejected.
    """
    model = (payload or schemas.ModelInput()).to_model()
    return _respond(await model_service.update(model_id, model))


@router.delete("/{model_id}/delete", response_model=None)
async def delete_model(
    model_id: str,
    model_service: service.ModelService = Depends(get_model_service),
) -> JSONResponse:
    return _respond(await model_service.delete(model_id))
