"""Reference data: brands, categories, units of measure, suppliers and customers.

Every kind offers the same surface: list, get-or-create by name, rename and a
delete that asks for confirmation while the record is still referenced.
Creating a retired record again by name brings it back.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import delete, update
from sqlmodel import Session, col, func, select

from stockroom.api.deps import get_db
from stockroom.auth import require_permission
from stockroom.core.errors import BusinessRuleViolation, InvalidInput, NotFound
from stockroom.core.logging_config import get_logger
from stockroom.core.permissions import REFERENCES_MANAGE, REFERENCES_VIEW
from stockroom.models.base import (
    COMPANY_TYPE_CUSTOMER,
    COMPANY_TYPE_SUPPLIER,
    Brand,
    Category,
    Company,
    Item,
    TransactionHeader,
    TransactionLine,
    Uom,
)
from stockroom.schemas.catalog import BrandRead, CategoryRead, CompanyRead, NamedCreate, ReferenceDeleteResult, UomRead
from stockroom.schemas.user import Principal
from stockroom.services.catalog import find_uom, uom_code

logger = get_logger(__name__)


def _count(db: Session, column: Any, value: int) -> int:
    return db.exec(select(func.count(column)).where(column == value)).one()


@dataclass(frozen=True)
class ReferenceKind:
    """How one kind of reference record is listed, created and unlinked."""

    path: str
    label: str
    read_schema: type
    list_query: Callable[[], Any]
    find_by_name: Callable[[Session, str], Optional[Any]]
    build: Callable[[str], Any]
    load: Callable[[Session, int], Optional[Any]]
    usage: Callable[[Session, int], dict[str, int]]
    unlink: Callable[[Session, int], None]
    # references that survive deletion; when present the record is retired instead
    retained: Callable[[Session, int], int] = lambda db, record_id: 0


def _brand_usage(db: Session, brand_id: int) -> dict[str, int]:
    return {"items": _count(db, Item.brand_id, brand_id)}


def _brand_unlink(db: Session, brand_id: int) -> None:
    db.exec(update(Item).where(col(Item.brand_id) == brand_id).values(brand_id=None))


def _category_usage(db: Session, category_id: int) -> dict[str, int]:
    return {
        "items": _count(db, Item.category_id, category_id),
        "subcategories": _count(db, Category.parent_id, category_id),
    }


def _descendants(db: Session, category_id: int) -> list[int]:
    found: list[int] = []
    frontier = [category_id]
    while frontier:
        frontier = list(db.exec(select(Category.id).where(col(Category.parent_id).in_(frontier))).all())
        found.extend(frontier)
    return found


def _category_unlink(db: Session, category_id: int) -> None:
    descendants = _descendants(db, category_id)
    affected = [category_id, *descendants]
    db.exec(update(Item).where(col(Item.category_id).in_(affected)).values(category_id=None))
    if descendants:
        db.exec(delete(Category).where(col(Category.id).in_(descendants)))


def _uom_usage(db: Session, uom_id: int) -> dict[str, int]:
    return {
        "items": _count(db, Item.base_uom_id, uom_id),
        "txnLines": _count(db, TransactionLine.uom_id, uom_id),
    }


def _uom_unlink(db: Session, uom_id: int) -> None:
    counts = _uom_usage(db, uom_id)
    if any(counts.values()):
        raise BusinessRuleViolation(
            "Unit of measure is still assigned to items or transaction lines and cannot be deleted",
            affectedRecords=counts,
        )


def _company_kind(company_type: str, path: str, label: str, prefix: str) -> ReferenceKind:
    def list_query() -> Any:
        return (
            select(Company)
            .where(Company.type == company_type, col(Company.is_active).is_(True))
            .order_by(col(Company.name))
        )

    def find_by_name(db: Session, name: str) -> Optional[Company]:
        return db.exec(select(Company).where(Company.name == name, Company.type == company_type)).first()

    def build(name: str) -> Company:
        return Company(code=f"{prefix}-{uuid4().hex[:8].upper()}", name=name, type=company_type)

    def load(db: Session, company_id: int) -> Optional[Company]:
        company = db.get(Company, company_id)
        return company if company is not None and company.type == company_type else None

    def transactions(db: Session, company_id: int) -> int:
        column = TransactionHeader.supplier_id if company_type == COMPANY_TYPE_SUPPLIER else TransactionHeader.customer_id
        return _count(db, column, company_id)

    def usage(db: Session, company_id: int) -> dict[str, int]:
        counts = {"transactions": transactions(db, company_id)}
        if company_type == COMPANY_TYPE_SUPPLIER:
            counts["items"] = _count(db, Item.default_supplier_id, company_id)
        return counts

    def unlink(db: Session, company_id: int) -> None:
        if company_type == COMPANY_TYPE_SUPPLIER:
            db.exec(update(Item).where(col(Item.default_supplier_id) == company_id).values(default_supplier_id=None))

    return ReferenceKind(
        path=path,
        label=label,
        read_schema=CompanyRead,
        list_query=list_query,
        find_by_name=find_by_name,
        build=build,
        load=load,
        usage=usage,
        unlink=unlink,
        retained=transactions,
    )


BRANDS = ReferenceKind(
    path="/brands",
    label="Brand",
    read_schema=BrandRead,
    list_query=lambda: select(Brand).where(col(Brand.is_active).is_(True)).order_by(col(Brand.name)),
    find_by_name=lambda db, name: db.exec(select(Brand).where(Brand.name == name)).first(),
    build=lambda name: Brand(name=name),
    load=lambda db, record_id: db.get(Brand, record_id),
    usage=_brand_usage,
    unlink=_brand_unlink,
)

CATEGORIES = ReferenceKind(
    path="/categories",
    label="Category",
    read_schema=CategoryRead,
    list_query=lambda: select(Category).order_by(col(Category.name)),
    find_by_name=lambda db, name: db.exec(select(Category).where(Category.name == name)).first(),
    build=lambda name: Category(name=name),
    load=lambda db, record_id: db.get(Category, record_id),
    usage=_category_usage,
    unlink=_category_unlink,
)

UOMS = ReferenceKind(
    path="/uoms",
    label="UOM",
    read_schema=UomRead,
    list_query=lambda: select(Uom).order_by(col(Uom.name)),
    find_by_name=find_uom,
    build=lambda name: Uom(code=uom_code(name), name=name),
    load=lambda db, record_id: db.get(Uom, record_id),
    usage=_uom_usage,
    unlink=_uom_unlink,
)

SUPPLIERS = _company_kind(COMPANY_TYPE_SUPPLIER, "/suppliers", "Supplier", "SUP")
CUSTOMERS = _company_kind(COMPANY_TYPE_CUSTOMER, "/customers", "Customer", "CUS")

REFERENCE_KINDS = (BRANDS, CATEGORIES, UOMS, SUPPLIERS, CUSTOMERS)


def _clean_name(payload: NamedCreate) -> str:
    name = (payload.name or "").strip()
    if not name:
        raise InvalidInput("Name is required")
    return name


def _confirmation_message(label: str, counts: dict[str, int]) -> str:
    used_by = ", ".join(f"{count} {key}" for key, count in counts.items() if count)
    return (
        f"This {label.lower()} is currently being used by {used_by}. Deleting it will remove the "
        f"{label.lower()} reference from these records. Do you want to continue?"
    )


def build_router(kind: ReferenceKind) -> APIRouter:
    router = APIRouter(prefix=kind.path, tags=["references"])
    read_schema = kind.read_schema

    @router.get("", response_model=list[read_schema])
    def list_records(
        _: Principal = Depends(require_permission(REFERENCES_VIEW)),
        db: Session = Depends(get_db),
    ) -> list[Any]:
        return [read_schema.model_validate(row) for row in db.exec(kind.list_query()).all()]

    @router.post("", response_model=read_schema)
    def get_or_create(
        payload: NamedCreate,
        _: Principal = Depends(require_permission(REFERENCES_MANAGE)),
        db: Session = Depends(get_db),
    ) -> Any:
        name = _clean_name(payload)
        existing = kind.find_by_name(db, name)
        if existing is not None:
            if getattr(existing, "is_active", True) is False:
                existing.is_active = True
                db.add(existing)
                db.commit()
                db.refresh(existing)
                logger.info("Restored %s %r", kind.label.lower(), existing.name)
            return read_schema.model_validate(existing)
        record = kind.build(name)
        db.add(record)
        db.commit()
        db.refresh(record)
        logger.info("Created %s %r", kind.label.lower(), name)
        body = read_schema.model_validate(record).model_dump(mode="json", by_alias=True)
        return JSONResponse(body, status_code=status.HTTP_201_CREATED)

    @router.put("/{record_id}", response_model=read_schema)
    def rename(
        record_id: int,
        payload: NamedCreate,
        _: Principal = Depends(require_permission(REFERENCES_MANAGE)),
        db: Session = Depends(get_db),
    ) -> Any:
        record = kind.load(db, record_id)
        if record is None:
            raise NotFound(f"{kind.label} not found")
        record.name = _clean_name(payload)
        db.add(record)
        db.commit()
        db.refresh(record)
        return read_schema.model_validate(record)

    @router.delete("/{record_id}", response_model=ReferenceDeleteResult)
    def remove(
        record_id: int,
        force: bool = False,
        _: Principal = Depends(require_permission(REFERENCES_MANAGE)),
        db: Session = Depends(get_db),
    ) -> ReferenceDeleteResult:
        record = kind.load(db, record_id)
        if record is None:
            raise NotFound(f"{kind.label} not found")
        counts = kind.usage(db, record_id)
        if any(counts.values()) and not force:
            raise BusinessRuleViolation(
                _confirmation_message(kind.label, counts),
                requiresConfirmation=True,
                affectedRecords=counts,
            )

        kind.unlink(db, record_id)
        kept = kind.retained(db, record_id)
        if kept:
            record.is_active = False
            db.add(record)
            message = f"{kind.label} deleted. {kept} transaction(s) keep the reference for historical records."
        else:
            db.delete(record)
            message = f"{kind.label} deleted successfully."
        db.commit()
        logger.info("Deleted %s #%s (force=%s)", kind.label.lower(), record_id, force)
        return ReferenceDeleteResult(message=message, affected_records=counts)

    return router


routers = [build_router(kind) for kind in REFERENCE_KINDS]
