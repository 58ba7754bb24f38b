"""
Endpoints REST del catálogo.
Unidades, fabricantes, reactivos y tipos de examen.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import require_permission
from app.database import get_db
from app.models.user import User
from app.schemas.catalog import (
    ExamTypeCreate,
    ExamTypeListResponse,
    ExamTypeResponse,
    ExamTypeUpdate,
    ManufacturerCreate,
    ManufacturerListResponse,
    ManufacturerResponse,
    ManufacturerUpdate,
    ReagentCreate,
    ReagentListResponse,
    ReagentResponse,
    ReagentUpdate,
    UnitCreate,
    UnitListResponse,
    UnitResponse,
    UnitUpdate,
)
from app.services import catalog_service

router = APIRouter()

_read = require_permission("catalog", "read")
_write = require_permission("catalog", "write")


# ── Units ─────────────────────────────────────────────


@router.post("/units", response_model=UnitResponse, status_code=201)
async def create_unit(
    data: UnitCreate,
    user: User = Depends(_write),
    db: AsyncSession = Depends(get_db),
):
    """Crea una unidad de laboratorio."""
    return await catalog_service.create_unit(db, data, user.id)


@router.get("/units", response_model=UnitListResponse)
async def list_units(
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=200),
    search: str | None = Query(None),
    is_active: bool | None = Query(None),
    user: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    return await catalog_service.list_units(
        db, page=page, size=size, search=search, is_active=is_active
    )


@router.get("/units/{unit_id}", response_model=UnitResponse)
async def get_unit(
    unit_id: UUID,
    user: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    return await catalog_service.get_unit(db, unit_id)


@router.put("/units/{unit_id}", response_model=UnitResponse)
async def update_unit(
    unit_id: UUID,
    data: UnitUpdate,
    user: User = Depends(_write),
    db: AsyncSession = Depends(get_db),
):
    """Actualiza (o desactiva) una unidad."""
    return await catalog_service.update_unit(db, unit_id, data, user.id)


# ── Manufacturers ─────────────────────────────────────


@router.post("/manufacturers", response_model=ManufacturerResponse, status_code=201)
async def create_manufacturer(
    data: ManufacturerCreate,
    user: User = Depends(_write),
    db: AsyncSession = Depends(get_db),
):
    return await catalog_service.create_manufacturer(db, data, user.id)


@router.get("/manufacturers", response_model=ManufacturerListResponse)
async def list_manufacturers(
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=200),
    search: str | None = Query(None),
    is_active: bool | None = Query(None),
    user: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    return await catalog_service.list_manufacturers(
        db, page=page, size=size, search=search, is_active=is_active
    )


@router.put("/manufacturers/{manufacturer_id}", response_model=ManufacturerResponse)
async def update_manufacturer(
    manufacturer_id: UUID,
    data: ManufacturerUpdate,
    user: User = Depends(_write),
    db: AsyncSession = Depends(get_db),
):
    return await catalog_service.update_manufacturer(db, manufacturer_id, data, user.id)


# ── Reagents ──────────────────────────────────────────


@router.post("/reagents", response_model=ReagentResponse, status_code=201)
async def create_reagent(
    data: ReagentCreate,
    user: User = Depends(_write),
    db: AsyncSession = Depends(get_db),
):
    """Crea un reactivo en el catálogo."""
    return await catalog_service.create_reagent(db, data, user.id)


@router.get("/reagents", response_model=ReagentListResponse)
async def list_reagents(
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=200),
    search: str | None = Query(None, description="Buscar por nombre"),
    is_active: bool | None = Query(None),
    user: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    return await catalog_service.list_reagents(
        db, page=page, size=size, search=search, is_active=is_active
    )


@router.get("/reagents/{reagent_id}", response_model=ReagentResponse)
async def get_reagent(
    reagent_id: UUID,
    user: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    return await catalog_service.get_reagent(db, reagent_id)


@router.put("/reagents/{reagent_id}", response_model=ReagentResponse)
async def update_reagent(
    reagent_id: UUID,
    data: ReagentUpdate,
    user: User = Depends(_write),
    db: AsyncSession = Depends(get_db),
):
    """Actualiza un reactivo. Nombre y unidad no cambian si ya tiene lotes."""
    return await catalog_service.update_reagent(db, reagent_id, data, user.id)


# ── Exam types ────────────────────────────────────────


@router.post("/exam-types", response_model=ExamTypeResponse, status_code=201)
async def create_exam_type(
    data: ExamTypeCreate,
    user: User = Depends(_write),
    db: AsyncSession = Depends(get_db),
):
    """Crea un tipo de examen con sus reactivos requeridos."""
    return await catalog_service.create_exam_type(db, data, user.id)


@router.get("/exam-types", response_model=ExamTypeListResponse)
async def list_exam_types(
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=200),
    search: str | None = Query(None),
    is_active: bool | None = Query(None),
    user: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    return await catalog_service.list_exam_types(
        db, page=page, size=size, search=search, is_active=is_active
    )


@router.get("/exam-types/{exam_type_id}", response_model=ExamTypeResponse)
async def get_exam_type(
    exam_type_id: UUID,
    user: User = Depends(_read),
    db: AsyncSession = Depends(get_db),
):
    return await catalog_service.get_exam_type(db, exam_type_id)


@router.put("/exam-types/{exam_type_id}", response_model=ExamTypeResponse)
async def update_exam_type(
    exam_type_id: UUID,
    data: ExamTypeUpdate,
    user: User = Depends(_write),
    db: AsyncSession = Depends(get_db),
):
    return await catalog_service.update_exam_type(db, exam_type_id, data, user.id)
