from __future__ import annotations

import argparse
import json
import os
import sys
from datetime import datetime

SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.abspath(os.path.join(SCRIPT_DIR, ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


def load_env_file(env_path: str) -> None:
    if not os.path.exists(env_path):
        return
    with open(env_path, "r", encoding="utf-8") as env_file:
        for line in env_file:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            os.environ.setdefault(key, value)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Compose one viewer's dashboard bundle and print it as JSON.")
    parser.add_argument("viewer_id", help="Profile id of the viewer.")
    parser.add_argument(
        "--snapshot",
        help="Path to a JSON file with sales/payments/targets/profiles/projects rows. "
        "Reads Supabase when omitted.",
    )
    parser.add_argument("--as-of", help="ISO timestamp to compose for. Defaults to now.")
    parser.add_argument(
        "--scope",
        choices=["individual", "team", "organization"],
        help="Override the scope derived from the viewer's role.",
    )
    parser.add_argument(
        "--env-file",
        default=os.path.join(PROJECT_ROOT, ".env"),
        help="Path to .env file.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    load_env_file(os.path.abspath(args.env_file))

    from src.api.dependencies import get_dashboard_service
    from src.core.config import get_settings
    from src.core.logging import configure_logging
    from src.schemas.dashboard import DashboardFilters, RawSnapshot

    configure_logging(get_settings().log_level)
    service = get_dashboard_service()
    filters = DashboardFilters(scope=args.scope)
    now = datetime.fromisoformat(args.as_of) if args.as_of else datetime.now()

    if args.snapshot:
        with open(args.snapshot, "r", encoding="utf-8") as snapshot_file:
            raw = RawSnapshot.model_validate(json.load(snapshot_file))
        bundle = service.compose_snapshot(raw, args.viewer_id, filters, now)
    else:
        bundle = service.get_dashboard(args.viewer_id, filters, now)
    print(json.dumps(bundle.model_dump(mode="json", by_alias=True), indent=2))


if __name__ == "__main__":
    main()
