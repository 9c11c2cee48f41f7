from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from src.core.supabase import SupabaseClient
from src.schemas.dashboard import RawSnapshot

logger = logging.getLogger(__name__)

MAX_QUERY_ROWS = 20000


class DashboardRepository:
    def __init__(self, client: Optional[SupabaseClient] = None) -> None:
        self._client = client

    @property
    def client(self) -> SupabaseClient:
        # Created on first read so snapshot-only requests work without Supabase settings.
        if self._client is None:
            self._client = SupabaseClient()
        return self._client

    def load_snapshot(self) -> RawSnapshot:
        return RawSnapshot(
            sales=self.list_sales(),
            payments=self.list_payments(),
            targets=self.list_targets(),
            profiles=self.list_profiles(),
            projects=self.list_projects(),
        )

    def list_sales(self) -> List[Dict[str, Any]]:
        return self._select_all(
            "sales",
            "id,sale_date,sales_executive_id,project_id,total_revenue,area_sqft,metadata",
            order="sale_date.asc",
        )

    def list_payments(self) -> List[Dict[str, Any]]:
        return self._select_all("payments", "id,sale_id,payment_date,amount", order="payment_date.asc")

    def list_targets(self) -> List[Dict[str, Any]]:
        return self._select_all(
            "targets",
            "id,user_id,period_type,start_date,target_amount,target_sqft",
            order="start_date.asc",
        )

    def list_profiles(self) -> List[Dict[str, Any]]:
        return self._select_all(
            "profiles",
            (
                "id,full_name,image_url,role,reporting_manager_id,is_active,"
                "dob,marriage_anniversary,joining_date"
            ),
            order="id.asc",
        )

    def list_projects(self) -> List[Dict[str, Any]]:
        return self._select_all(
            "projects",
            "id,name,site_photos,is_active",
            filters=[("is_active", "eq.true")],
            order="id.asc",
        )

    def _select_all(
        self, table: str, select: str, order: str, filters: Optional[List[Tuple[str, str]]] = None
    ) -> List[Dict[str, Any]]:
        rows = self.client.select_all(
            table=table,
            select=select,
            filters=filters,
            order=order,
            max_rows=MAX_QUERY_ROWS,
        )
        logger.debug("Loaded %s rows from %s", len(rows), table)
        return rows
