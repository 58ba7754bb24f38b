"""
Lógica de negocio del catálogo.
Unidades, fabricantes, reactivos y tipos de examen. No se eliminan
registros: se desactivan con `is_active=False`.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictException, NotFoundException, ValidationException
from app.models.reagent import ExamType, Manufacturer, Reagent
from app.models.reagent_lot import ReagentLot
from app.models.unit import Unit
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
from app.services.audit_service import log_action


# ── Helpers ───────────────────────────────────────────


async def _ensure_unique_name(db: AsyncSession, model, name: str, exclude_id: UUID | None = None) -> None:
    query = select(model.id).where(func.lower(model.name) == name.lower())
    if exclude_id:
        query = query.where(model.id != exclude_id)
    existing = await db.execute(query)
    if existing.scalar_one_or_none():
        raise ConflictException(f"Ya existe un registro con el nombre '{name}'")


async def _paginate(
    db: AsyncSession,
    model,
    page: int,
    size: int,
    search: str | None,
    is_active: bool | None,
):
    query = select(model)
    count_query = select(func.count()).select_from(model)

    if is_active is not None:
        query = query.where(model.is_active == is_active)
        count_query = count_query.where(model.is_active == is_active)

    if search:
        query = query.where(model.name.ilike(f"%{search}%"))
        count_query = count_query.where(model.name.ilike(f"%{search}%"))

    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    query = query.order_by(model.name.asc()).offset((page - 1) * size).limit(size)
    result = await db.execute(query)
    items = result.scalars().all()

    pages = (total + size - 1) // size if total > 0 else 1
    return items, total, pages


async def _get_or_404(db: AsyncSession, model, obj_id: UUID, label: str):
    obj = await db.get(model, obj_id)
    if not obj:
        raise NotFoundException(label)
    return obj


# ── Units ─────────────────────────────────────────────


async def create_unit(db: AsyncSession, data: UnitCreate, user_id: UUID | None = None) -> UnitResponse:
    await _ensure_unique_name(db, Unit, data.name)

    unit = Unit(name=data.name, location=data.location, contact_info=data.contact_info)
    db.add(unit)
    await db.flush()
    await db.refresh(unit)

    await log_action(
        db, user_id=user_id, entity="unit", entity_id=str(unit.id),
        action="create", new_data=data.model_dump(),
    )
    return UnitResponse.model_validate(unit)


async def update_unit(db: AsyncSession, unit_id: UUID, data: UnitUpdate, user_id: UUID | None = None) -> UnitResponse:
    unit = await _get_or_404(db, Unit, unit_id, "Unidad")

    update_data = data.model_dump(exclude_unset=True)
    if "name" in update_data:
        await _ensure_unique_name(db, Unit, update_data["name"], exclude_id=unit_id)

    for key, value in update_data.items():
        setattr(unit, key, value)

    await db.flush()
    await db.refresh(unit)

    await log_action(
        db, user_id=user_id, entity="unit", entity_id=str(unit.id),
        action="update", new_data=update_data,
    )
    return UnitResponse.model_validate(unit)


async def list_units(
    db: AsyncSession, page: int = 1, size: int = 50,
    search: str | None = None, is_active: bool | None = None,
) -> UnitListResponse:
    items, total, pages = await _paginate(db, Unit, page, size, search, is_active)
    return UnitListResponse(
        items=[UnitResponse.model_validate(u) for u in items],
        total=total, page=page, size=size, pages=pages,
    )


async def get_unit(db: AsyncSession, unit_id: UUID) -> UnitResponse:
    return UnitResponse.model_validate(await _get_or_404(db, Unit, unit_id, "Unidad"))


# ── Manufacturers ─────────────────────────────────────


async def create_manufacturer(
    db: AsyncSession, data: ManufacturerCreate, user_id: UUID | None = None
) -> ManufacturerResponse:
    await _ensure_unique_name(db, Manufacturer, data.name)

    manufacturer = Manufacturer(name=data.name, contact_info=data.contact_info)
    db.add(manufacturer)
    await db.flush()
    await db.refresh(manufacturer)

    await log_action(
        db, user_id=user_id, entity="manufacturer", entity_id=str(manufacturer.id),
        action="create", new_data=data.model_dump(),
    )
    return ManufacturerResponse.model_validate(manufacturer)


async def update_manufacturer(
    db: AsyncSession, manufacturer_id: UUID, data: ManufacturerUpdate, user_id: UUID | None = None
) -> ManufacturerResponse:
    manufacturer = await _get_or_404(db, Manufacturer, manufacturer_id, "Fabricante")

    update_data = data.model_dump(exclude_unset=True)
    if "name" in update_data:
        await _ensure_unique_name(db, Manufacturer, update_data["name"], exclude_id=manufacturer_id)

    for key, value in update_data.items():
        setattr(manufacturer, key, value)

    await db.flush()
    await db.refresh(manufacturer)

    await log_action(
        db, user_id=user_id, entity="manufacturer", entity_id=str(manufacturer.id),
        action="update", new_data=update_data,
    )
    return ManufacturerResponse.model_validate(manufacturer)


async def list_manufacturers(
    db: AsyncSession, page: int = 1, size: int = 50,
    search: str | None = None, is_active: bool | None = None,
) -> ManufacturerListResponse:
    items, total, pages = await _paginate(db, Manufacturer, page, size, search, is_active)
    return ManufacturerListResponse(
        items=[ManufacturerResponse.model_validate(m) for m in items],
        total=total, page=page, size=size, pages=pages,
    )


# ── Reagents ──────────────────────────────────────────


async def create_reagent(
    db: AsyncSession, data: ReagentCreate, user_id: UUID | None = None
) -> ReagentResponse:
    await _ensure_unique_name(db, Reagent, data.name)

    reagent = Reagent(
        name=data.name,
        description=data.description,
        type=data.type,
        unit_measure=data.unit_measure,
        minimum_stock=data.minimum_stock,
        storage_conditions=data.storage_conditions,
    )
    db.add(reagent)
    await db.flush()
    await db.refresh(reagent)

    await log_action(
        db, user_id=user_id, entity="reagent", entity_id=str(reagent.id),
        action="create", new_data=data.model_dump(mode="json"),
    )
    return ReagentResponse.model_validate(reagent)


async def update_reagent(
    db: AsyncSession, reagent_id: UUID, data: ReagentUpdate, user_id: UUID | None = None
) -> ReagentResponse:
    reagent = await _get_or_404(db, Reagent, reagent_id, "Reactivo")
    update_data = data.model_dump(exclude_unset=True)

    identity_changed = (
        ("name" in update_data and update_data["name"] != reagent.name)
        or ("unit_measure" in update_data and update_data["unit_measure"] != reagent.unit_measure)
    )
    if identity_changed:
        lots = await db.execute(
            select(func.count()).select_from(ReagentLot).where(ReagentLot.reagent_id == reagent_id)
        )
        if (lots.scalar() or 0) > 0:
            raise ConflictException(
                "No se puede cambiar el nombre ni la unidad de un reactivo con lotes registrados"
            )
    if "name" in update_data:
        await _ensure_unique_name(db, Reagent, update_data["name"], exclude_id=reagent_id)

    old_data = {"name": reagent.name, "minimum_stock": reagent.minimum_stock, "is_active": reagent.is_active}
    for key, value in update_data.items():
        setattr(reagent, key, value)

    await db.flush()
    await db.refresh(reagent)

    await log_action(
        db, user_id=user_id, entity="reagent", entity_id=str(reagent.id),
        action="update", old_data=old_data, new_data=data.model_dump(mode="json", exclude_unset=True),
    )
    return ReagentResponse.model_validate(reagent)


async def list_reagents(
    db: AsyncSession, page: int = 1, size: int = 50,
    search: str | None = None, is_active: bool | None = None,
) -> ReagentListResponse:
    items, total, pages = await _paginate(db, Reagent, page, size, search, is_active)
    return ReagentListResponse(
        items=[ReagentResponse.model_validate(r) for r in items],
        total=total, page=page, size=size, pages=pages,
    )


async def get_reagent(db: AsyncSession, reagent_id: UUID) -> ReagentResponse:
    return ReagentResponse.model_validate(await _get_or_404(db, Reagent, reagent_id, "Reactivo"))


# ── Exam types ────────────────────────────────────────


async def _validate_requirements(db: AsyncSession, requirements: list) -> list[dict]:
    """Verifica que los reactivos existan y serializa a JSON."""
    seen: set[UUID] = set()
    for req in requirements:
        if req.reagent_id in seen:
            raise ValidationException("Un reactivo aparece más de una vez en el tipo de examen")
        seen.add(req.reagent_id)
        if not await db.get(Reagent, req.reagent_id):
            raise NotFoundException("Reactivo", detail=f"Reactivo {req.reagent_id} no encontrado")
    return [req.model_dump(mode="json") for req in requirements]


async def create_exam_type(
    db: AsyncSession, data: ExamTypeCreate, user_id: UUID | None = None
) -> ExamTypeResponse:
    await _ensure_unique_name(db, ExamType, data.name)

    exam_type = ExamType(
        name=data.name,
        description=data.description,
        required_reagents=await _validate_requirements(db, data.required_reagents),
    )
    db.add(exam_type)
    await db.flush()
    await db.refresh(exam_type)

    await log_action(
        db, user_id=user_id, entity="exam_type", entity_id=str(exam_type.id),
        action="create", new_data=data.model_dump(mode="json"),
    )
    return ExamTypeResponse.model_validate(exam_type)


async def update_exam_type(
    db: AsyncSession, exam_type_id: UUID, data: ExamTypeUpdate, user_id: UUID | None = None
) -> ExamTypeResponse:
    exam_type = await _get_or_404(db, ExamType, exam_type_id, "Tipo de examen")

    update_data = data.model_dump(exclude_unset=True)
    if "name" in update_data:
        await _ensure_unique_name(db, ExamType, update_data["name"], exclude_id=exam_type_id)
    if data.required_reagents is not None:
        update_data["required_reagents"] = await _validate_requirements(db, data.required_reagents)

    for key, value in update_data.items():
        setattr(exam_type, key, value)

    await db.flush()
    await db.refresh(exam_type)

    await log_action(
        db, user_id=user_id, entity="exam_type", entity_id=str(exam_type.id),
        action="update", new_data=data.model_dump(mode="json", exclude_unset=True),
    )
    return ExamTypeResponse.model_validate(exam_type)


async def list_exam_types(
    db: AsyncSession, page: int = 1, size: int = 50,
    search: str | None = None, is_active: bool | None = None,
) -> ExamTypeListResponse:
    items, total, pages = await _paginate(db, ExamType, page, size, search, is_active)
    return ExamTypeListResponse(
        items=[ExamTypeResponse.model_validate(e) for e in items],
        total=total, page=page, size=size, pages=pages,
    )


async def get_exam_type(db: AsyncSession, exam_type_id: UUID) -> ExamTypeResponse:
    return ExamTypeResponse.model_validate(
        await _get_or_404(db, ExamType, exam_type_id, "Tipo de examen")
    )
