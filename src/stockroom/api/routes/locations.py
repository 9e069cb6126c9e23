from fastapi import APIRouter, Depends, status
from sqlmodel import Session, col, select

from stockroom.api.deps import get_db
from stockroom.auth import require_permission
from stockroom.core.errors import InvalidInput
from stockroom.core.permissions import REFERENCES_MANAGE, REFERENCES_VIEW
from stockroom.models.base import Location, Warehouse
from stockroom.schemas.catalog import LocationCreate, LocationRead, WarehouseRead
from stockroom.schemas.user import Principal

router = APIRouter(prefix="/locations", tags=["locations"])


def _to_read(location: Location, warehouse: Warehouse | None) -> LocationRead:
    return LocationRead(
        id=location.id,
        code=location.code,
        name=location.name,
        is_active=location.is_active,
        warehouse=WarehouseRead.model_validate(warehouse) if warehouse else None,
    )


@router.get("", response_model=list[LocationRead])
def list_locations(
    _: Principal = Depends(require_permission(REFERENCES_VIEW)),
    db: Session = Depends(get_db),
) -> list[LocationRead]:
    statement = (
        select(Location, Warehouse)
        .join(Warehouse, col(Warehouse.id) == col(Location.warehouse_id))
        .where(col(Location.is_active).is_(True))
        .order_by(col(Location.name))
    )
    return [_to_read(location, warehouse) for location, warehouse in db.exec(statement).all()]


@router.post("", response_model=LocationRead, status_code=status.HTTP_201_CREATED)
def create_location(
    payload: LocationCreate,
    _: Principal = Depends(require_permission(REFERENCES_MANAGE)),
    db: Session = Depends(get_db),
) -> LocationRead:
    if not payload.code.strip() or not payload.name.strip():
        raise InvalidInput("code and name are required")
    warehouse_code = payload.warehouse_code.strip() or "MAIN"
    warehouse = db.exec(select(Warehouse).where(Warehouse.code == warehouse_code)).first()
    if warehouse is None:
        warehouse = Warehouse(code=warehouse_code, name=payload.warehouse_name or f"{warehouse_code} Warehouse")
        db.add(warehouse)
        db.flush()
    location = Location(warehouse_id=warehouse.id, code=payload.code.strip(), name=payload.name.strip())
    db.add(location)
    db.commit()
    db.refresh(location)
    return _to_read(location, warehouse)
