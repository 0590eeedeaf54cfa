"""
Schedule Optimizer — advisory recommendations built on the CPM result.

Three checks, text output only:
    - parallelizable:     phases with more than PARALLEL_FLOAT_THRESHOLD days of float
    - bottlenecks:        critical phases longer than BOTTLENECK_MIN_WEEKS
    - resource conflicts: engineers logging work on several in-progress phases

Nothing here writes phase state.
"""

import logging
import math

from sqlalchemy import func, select

from phasetrack.models import db
from phasetrack.models.phase import Phase, WorkLog
from phasetrack.services.critical_path import calculate_critical_path

logger = logging.getLogger(__name__)

# Float above this many days marks a phase as a parallel-execution candidate.
PARALLEL_FLOAT_THRESHOLD = 5

# Conservative share of the available float that parallel work can recover.
PARALLEL_SAVINGS_RATIO = 0.3

BOTTLENECK_MIN_WEEKS = 3


def _round_half_up(value):
    return int(math.floor(value + 0.5))


def _resource_conflicts(project_id: int) -> list[dict]:
    rows = db.session.execute(
        select(WorkLog.engineer_id, func.count(func.distinct(Phase.id)))
        .join(Phase, WorkLog.phase_id == Phase.id)
        .where(Phase.project_id == project_id, Phase.status == "in_progress")
        .group_by(WorkLog.engineer_id)
        .having(func.count(func.distinct(Phase.id)) > 1)
        .order_by(WorkLog.engineer_id)
    ).all()
    return [{"engineer_id": engineer_id, "phase_count": count} for engineer_id, count in rows]


def optimize_schedule(project_id: int) -> dict:
    """
    Returns:
        {
          "project_id", "recommendations": [str], "potential_time_savings": int days,
          "risk_factors": [str], "parallelizable_phase_ids": [...],
          "bottleneck_phase_ids": [...], "resource_conflicts": [{engineer_id, phase_count}],
        }
    """
    cpm = calculate_critical_path(project_id)

    recommendations = []
    risk_factors = []
    savings = 0.0

    parallel = {
        pid: slack for pid, slack in cpm["float_by_phase_id"].items()
        if slack > PARALLEL_FLOAT_THRESHOLD
    }
    if parallel:
        recommendations.append(
            f"Consider parallel execution for {len(parallel)} phases with available float time"
        )
        savings += sum(parallel.values()) * PARALLEL_SAVINGS_RATIO

    critical = set(cpm["critical_phase_ids"])
    bottlenecks = sorted(
        (row for row in cpm["schedule"]
         if row["phase_id"] in critical and row["duration"] > BOTTLENECK_MIN_WEEKS * 7),
        key=lambda row: (-row["duration"], row["phase_order"]),
    )
    if bottlenecks:
        recommendations.append(
            f"Focus resource allocation on {len(bottlenecks)} bottleneck phases to reduce critical path"
        )
        risk_factors.append("High-duration phases on critical path increase project risk")

    conflicts = _resource_conflicts(project_id)
    if conflicts:
        recommendations.append(
            "Resolve resource conflicts by redistributing workload or adjusting phase timing"
        )
        risk_factors.append("Resource conflicts may cause delays and reduce quality")

    logger.info(
        "Schedule optimization project_id=%s recommendations=%d savings=%s",
        project_id, len(recommendations), _round_half_up(savings),
    )
    return {
        "project_id": project_id,
        "recommendations": recommendations,
        "potential_time_savings": _round_half_up(savings),
        "risk_factors": risk_factors,
        "parallelizable_phase_ids": sorted(parallel),
        "bottleneck_phase_ids": [row["phase_id"] for row in bottlenecks],
        "resource_conflicts": conflicts,
    }
