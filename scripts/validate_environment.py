#!/usr/bin/env python3
"""Validate local reservation engine environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from datetime import date, timedelta
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from reservation_engine.domain.models import AuthContext, Role
from reservation_engine.repository.data_repository import DataRepository
from reservation_engine.services.availability_service import AvailabilityQueryService
from reservation_engine.services.utilization_service import UtilizationService
from reservation_engine.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="reservations-env-")

    # CHECK 1 — Python version >= 3.10
    if sys.version_info >= (3, 10):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.10",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2 — Required packages importable
    package_names = ["fastapi", "uvicorn", "pydantic", "numpy", "pandas", "httpx", "pytest"]
    import_errors: list[str] = []
    for module_name in package_names:
        try:
            importlib.import_module(module_name)
        except ImportError as exc:
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        validation_settings = replace(
            get_settings(),
            database_path=Path(temp_dir) / "reservations_validation.db",
        )
        repository = DataRepository(validation_settings)
        context = AuthContext(tenant_id=validation_settings.demo_tenant_id, role=Role.ADMIN)
        start = date.today()
        end = start + timedelta(days=29)

        # CHECK 3 — Database initialization
        try:
            repository.initialize_database()
            ok, line = _print_result("Database initialization", True)
        except Exception as exc:
            ok, line = _print_result("Database initialization", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 4 — Demo inventory seeding
        try:
            repository.seed_demo_data()
            ok, line = _print_result("Demo inventory seeding", True)
        except Exception as exc:
            ok, line = _print_result("Demo inventory seeding", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 5 — Availability query over the seeded inventory
        try:
            report = AvailabilityQueryService(repository, validation_settings).query(
                context,
                start.isoformat(),
                end.isoformat(),
            )
            if report.summary.total_assets == 0:
                raise RuntimeError("no assets returned for the demo tenant")
            ok, line = _print_result(
                "Availability query",
                True,
                f": {report.summary.available_count}/{report.summary.total_assets} available",
            )
        except Exception as exc:
            ok, line = _print_result("Availability query", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 6 — Utilisation report (pandas)
        try:
            report = UtilizationService(repository, validation_settings).utilization(
                context,
                start.isoformat(),
                end.isoformat(),
            )
            ok, line = _print_result(
                "Utilisation report",
                True,
                f": {len(report['by_city'])} cities",
            )
        except Exception as exc:
            ok, line = _print_result("Utilisation report", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Reservation Engine Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
