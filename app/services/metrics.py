"""Synthetic project metrics and aggregate analytics.

These are placeholder formulas (noise around baseline constants), not
physical models. The random source is injectable for tests.
"""

import random
import resource
import sys
import time
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from app.models.project import Project, ProjectStatus

BASE_PRODUCTION_KW = 100.0
PRODUCTION_VARIATION = 10.0  # ±10 around the 100 kW baseline
BASE_EFFICIENCY = 85.0
EFFICIENCY_VARIATION = 5.0
PRODUCTION_HOURS_PER_DAY = 8
PRICE_PER_KWH = 0.12
DEFAULT_PROJECT_COST = 100_000.0
ROI_HORIZON_YEARS = 20

_started_at = time.monotonic()


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def generate_energy_data(rng: random.Random) -> dict[str, float]:
    value = max(0.0, BASE_PRODUCTION_KW + rng.uniform(-PRODUCTION_VARIATION, PRODUCTION_VARIATION))
    daily = value * PRODUCTION_HOURS_PER_DAY
    return {
        "current": value,
        "daily": daily,
        "weekly": daily * 7,
        "monthly": daily * 30,
    }


def calculate_efficiency(rng: random.Random) -> float:
    value = BASE_EFFICIENCY + rng.uniform(-EFFICIENCY_VARIATION, EFFICIENCY_VARIATION)
    return max(0.0, min(100.0, value))


def component_health(rng: random.Random) -> dict[str, str]:
    def _state(failure_rate: float) -> str:
        return "online" if rng.random() > failure_rate else "offline"

    return {
        "inverters": _state(0.10),
        "sensors": _state(0.05),
        "communication": _state(0.02),
        "lastCheck": now_iso(),
    }


def financial_metrics(project: Project, rng: random.Random) -> dict[str, float]:
    daily_revenue = generate_energy_data(rng)["daily"] * PRICE_PER_KWH
    monthly_revenue = daily_revenue * 30
    yearly_revenue = monthly_revenue * 12
    cost = project.estimated_cost or DEFAULT_PROJECT_COST
    return {
        "dailyRevenue": round(daily_revenue, 2),
        "monthlyRevenue": round(monthly_revenue, 2),
        "yearlyRevenue": round(yearly_revenue, 2),
        "roi": round(yearly_revenue * ROI_HORIZON_YEARS / cost * 100, 2),
        "paybackPeriod": round(cost / yearly_revenue, 1),
    }


def project_metrics(project: Project, rng: random.Random) -> dict[str, Any]:
    return {
        "projectId": str(project.id),
        "organizationId": str(project.organization_id),
        "energyProduction": generate_energy_data(rng),
        "efficiency": calculate_efficiency(rng),
        "systemHealth": component_health(rng),
        "financialMetrics": financial_metrics(project, rng),
        "timestamp": now_iso(),
    }


def aggregate_analytics(
    projects: Sequence[Project],
    rng: random.Random,
    time_range: str = "24h",
) -> dict[str, Any]:
    count = len(projects)
    efficiencies = [calculate_efficiency(rng) for _ in projects]
    return {
        "totalProjects": count,
        "activeProjects": sum(1 for p in projects if p.status == ProjectStatus.OPERATIONAL),
        "totalCapacity": sum(p.system_capacity or 0.0 for p in projects),
        "totalEnergyProduced": sum(generate_energy_data(rng)["current"] for _ in projects),
        "averageEfficiency": sum(efficiencies) / count if count else 0.0,
        "timeRange": time_range,
        "timestamp": now_iso(),
    }


def process_snapshot() -> dict[str, Any]:
    """Uptime and memory of this process."""
    # ru_maxrss is KiB on Linux, bytes on macOS
    max_rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    divisor = 1024 * 1024 if sys.platform == "darwin" else 1024
    return {
        "uptime": round(time.monotonic() - _started_at, 3),
        "memory": {"maxRssMb": round(max_rss / divisor, 1)},
    }
