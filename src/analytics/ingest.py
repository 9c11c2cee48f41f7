from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.core.errors import ContractViolationError
from src.models.records import Actor, DatedMetricRecord, Project, TargetRecord
from src.schemas.dashboard import IngestionDiagnostics, RawSnapshot

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class RecordSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    sales: Tuple[DatedMetricRecord, ...] = ()
    payments: Tuple[DatedMetricRecord, ...] = ()
    targets: Tuple[TargetRecord, ...] = ()
    actors: Tuple[Actor, ...] = ()
    projects: Tuple[Project, ...] = ()
    diagnostics: IngestionDiagnostics = Field(default_factory=IngestionDiagnostics)


def build_snapshot(raw: RawSnapshot) -> RecordSnapshot:
    sales_rows = _require(raw.sales, "sales")
    payment_rows = _require(raw.payments, "payments")
    target_rows = _require(raw.targets, "targets")
    profile_rows = _require(raw.profiles, "profiles")
    project_rows = raw.projects or []

    sales, sales_rejected = _validate_rows(sales_rows, sale_from_row, DatedMetricRecord)
    sale_actors = {sale.id: sale.actor_id for sale in sales}
    payments, payments_rejected = _validate_rows(
        payment_rows, lambda row: payment_from_row(row, sale_actors), DatedMetricRecord
    )
    targets, targets_rejected = _validate_rows(target_rows, target_from_row, TargetRecord)
    actors, profiles_rejected = _validate_rows(profile_rows, actor_from_row, Actor)
    projects, projects_rejected = _validate_rows(project_rows, project_from_row, Project)

    diagnostics = IngestionDiagnostics(
        sales_rejected=sales_rejected,
        payments_rejected=payments_rejected,
        targets_rejected=targets_rejected,
        profiles_rejected=profiles_rejected,
        projects_rejected=projects_rejected,
    )
    if diagnostics.total_rejected:
        logger.warning(
            "Rejected malformed rows: sales=%s payments=%s targets=%s profiles=%s projects=%s",
            sales_rejected,
            payments_rejected,
            targets_rejected,
            profiles_rejected,
            projects_rejected,
        )
    return RecordSnapshot(
        sales=tuple(sales),
        payments=tuple(payments),
        targets=tuple(targets),
        actors=tuple(actors),
        projects=tuple(projects),
        diagnostics=diagnostics,
    )


def sale_from_row(row: Dict[str, Any]) -> Dict[str, Any]:
    metadata = row.get("metadata") or {}
    booking_status = metadata.get("booking_status") if isinstance(metadata, dict) else None
    return {
        "id": _row_id(row),
        "occurred_on": row.get("sale_date"),
        "actor_id": row.get("sales_executive_id"),
        "amount": row.get("total_revenue"),
        "quantity": row.get("area_sqft"),
        "group_id": row.get("project_id"),
        "is_cancelled": booking_status == "cancelled",
    }


def payment_from_row(row: Dict[str, Any], sale_actors: Dict[str, Optional[str]]) -> Dict[str, Any]:
    sale_id = _optional_str(row.get("sale_id"))
    actor_id = row.get("sales_executive_id")
    if not actor_id and sale_id:
        actor_id = sale_actors.get(sale_id)
    return {
        "id": _row_id(row),
        "occurred_on": row.get("payment_date"),
        "actor_id": actor_id,
        "amount": row.get("amount"),
        "group_id": sale_id,
    }


def target_from_row(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "actor_id": _optional_str(row.get("user_id")),
        "period_start": row.get("period_start") or row.get("start_date"),
        "period_kind": row.get("period_type") or "monthly",
        "amount": row.get("target_amount"),
        "quantity": row.get("target_sqft"),
    }


def actor_from_row(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": _row_id(row),
        "display_name": str(row.get("full_name") or ""),
        "avatar_ref": row.get("image_url"),
        "role": row.get("role"),
        "manager_id": _optional_str(row.get("reporting_manager_id")),
        "is_active": _active_flag(row),
        "birth_date": row.get("dob"),
        "marriage_anniversary": row.get("marriage_anniversary"),
        "joining_date": row.get("joining_date"),
    }


def project_from_row(row: Dict[str, Any]) -> Dict[str, Any]:
    photos = row.get("site_photos") or []
    return {
        "id": _row_id(row),
        "name": row.get("name"),
        "image_ref": photos[0] if isinstance(photos, list) and photos else None,
        "is_active": _active_flag(row),
    }


def _require(rows: Optional[Sequence[Any]], collection: str) -> Sequence[Any]:
    if rows is None:
        raise ContractViolationError(collection)
    return rows


def _validate_rows(
    rows: Sequence[Any],
    builder: Callable[[Dict[str, Any]], Dict[str, Any]],
    model: Type[ModelT],
) -> Tuple[List[ModelT], int]:
    records: List[ModelT] = []
    rejected = 0
    for row in rows:
        if not isinstance(row, dict):
            rejected += 1
            continue
        try:
            records.append(model.model_validate(builder(row)))
        except ValidationError:
            rejected += 1
    return records, rejected


def _active_flag(row: Dict[str, Any]) -> Any:
    # Missing means active; pydantic parses "true"/"false" and rejects anything else.
    value = row.get("is_active")
    return True if value is None else value


def _row_id(row: Dict[str, Any]) -> Optional[str]:
    return _optional_str(row.get("id") or row.get("_id"))


def _optional_str(value: Any) -> Optional[str]:
    if value in (None, ""):
        return None
    return str(value)
