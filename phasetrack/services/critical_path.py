"""
Critical Path Engine (CPM).

Two-pass Critical Path Method over one project's phase graph:

    forward:   ES = max(EF of predecessors, 0)          EF = ES + duration
    total:     max(EF)
    backward:  LF = min(LS of successors, total)        LS = LF - duration
    float:     LS - ES   → critical when float ≤ CRITICAL_FLOAT_TOLERANCE

Durations are ``planned_weeks * 7`` days.  Every edge acts as a
finish-to-start gate; ``dependency_type`` and ``lag_days`` are stored on
the edge but do not move dates here.

Passes run in topological order (Kahn's algorithm, ``phase_order`` as
tie-break), so an added edge such as phase 1 → phase 4 is honoured even
when it skips ahead of the sequence.  A cycle raises ``GraphError``.

Side effect: ``PhaseDependency.is_critical_path`` is recomputed for every
edge of the project.  Two marking modes:

    touching (default)  an edge is critical if EITHER endpoint is critical
    strict              both endpoints critical AND pred.EF == succ.ES,
                        i.e. the edge itself carries the critical path
"""

import heapq
import logging
from collections import defaultdict

from sqlalchemy import select, update

from phasetrack.core.exceptions import GraphError, NotFoundError
from phasetrack.models import db
from phasetrack.models.phase import Phase, PhaseDependency
from phasetrack.models.project import Project
from phasetrack.services.dependency_graph import load_edges

logger = logging.getLogger(__name__)

DAYS_PER_WEEK = 7

# Slack at or below this many days counts as zero float (day rounding).
CRITICAL_FLOAT_TOLERANCE = 0.1

MARKING_TOUCHING = "touching"
MARKING_STRICT = "strict"
MARKING_MODES = (MARKING_TOUCHING, MARKING_STRICT)


def topological_order(phases, edges) -> list[int]:
    """
    Kahn's algorithm over phase ids; ready nodes leave in ``phase_order``.

    Raises:
        GraphError: the edge set contains a cycle.
    """
    order_key = {p.id: (p.phase_order, p.id) for p in phases}
    indegree = {p.id: 0 for p in phases}
    successors = defaultdict(list)
    for e in edges:
        if e.predecessor_phase_id not in indegree or e.successor_phase_id not in indegree:
            continue
        successors[e.predecessor_phase_id].append(e.successor_phase_id)
        indegree[e.successor_phase_id] += 1

    heap = [order_key[pid] for pid, deg in indegree.items() if deg == 0]
    heapq.heapify(heap)
    topo = []
    while heap:
        _, pid = heapq.heappop(heap)
        topo.append(pid)
        for succ in successors[pid]:
            indegree[succ] -= 1
            if indegree[succ] == 0:
                heapq.heappush(heap, order_key[succ])

    if len(topo) != len(indegree):
        stuck = sorted(pid for pid, deg in indegree.items() if deg > 0)
        raise GraphError(
            "Dependency graph contains a cycle; cannot compute critical path",
            details={"phase_ids": stuck},
        )
    return topo


def compute_schedule(phases, edges) -> dict:
    """
    Pure CPM computation on loaded rows.

    Returns:
        dict with ``order`` (topological ids), ``duration``, ``es``, ``ef``,
        ``ls``, ``lf``, ``float`` (all keyed by phase id) and ``total_duration``.
    """
    topo = topological_order(phases, edges)
    duration = {p.id: (p.planned_weeks or 0) * DAYS_PER_WEEK for p in phases}

    preds = defaultdict(list)
    succs = defaultdict(list)
    for e in edges:
        if e.predecessor_phase_id in duration and e.successor_phase_id in duration:
            preds[e.successor_phase_id].append(e.predecessor_phase_id)
            succs[e.predecessor_phase_id].append(e.successor_phase_id)

    es, ef = {}, {}
    for pid in topo:
        es[pid] = max((ef[p] for p in preds[pid]), default=0)
        ef[pid] = es[pid] + duration[pid]

    total_duration = max(ef.values(), default=0)

    ls, lf = {}, {}
    for pid in reversed(topo):
        lf[pid] = min((ls[s] for s in succs[pid]), default=total_duration)
        ls[pid] = lf[pid] - duration[pid]

    total_float = {pid: ls[pid] - es[pid] for pid in topo}
    return {
        "order": topo,
        "duration": duration,
        "es": es,
        "ef": ef,
        "ls": ls,
        "lf": lf,
        "float": total_float,
        "total_duration": total_duration,
    }


def _edge_is_critical(edge, critical: set, sched: dict, strict: bool) -> bool:
    pred, succ = edge.predecessor_phase_id, edge.successor_phase_id
    if not strict:
        return pred in critical or succ in critical
    return (
        pred in critical
        and succ in critical
        and abs(sched["ef"][pred] - sched["es"][succ]) <= CRITICAL_FLOAT_TOLERANCE
    )


def calculate_critical_path(project_id: int, strict: bool = False) -> dict:
    """
    Run CPM for a project and refresh the edges' critical flags.

    Returns:
        {
          "project_id", "mode", "total_duration",
          "critical_phase_ids": [...] in topological order,
          "float_by_phase_id": {phase_id: days},
          "schedule": [{phase_id, phase_name, phase_order, duration,
                        early_start, early_finish, late_start, late_finish,
                        total_float, is_critical}, ...],
        }
    """
    if not db.session.get(Project, project_id):
        raise NotFoundError(resource="Project", resource_id=project_id)

    phases = db.session.execute(
        select(Phase).where(Phase.project_id == project_id).order_by(Phase.phase_order)
    ).scalars().all()
    edges = load_edges(project_id)

    sched = compute_schedule(phases, edges)
    by_id = {p.id: p for p in phases}
    critical_ids = [pid for pid in sched["order"] if sched["float"][pid] <= CRITICAL_FLOAT_TOLERANCE]
    critical = set(critical_ids)

    marked = [e.id for e in edges if _edge_is_critical(e, critical, sched, strict)]
    db.session.execute(
        update(PhaseDependency)
        .where(PhaseDependency.project_id == project_id)
        .values(is_critical_path=False)
        .execution_options(synchronize_session=False)
    )
    if marked:
        db.session.execute(
            update(PhaseDependency)
            .where(PhaseDependency.id.in_(marked))
            .values(is_critical_path=True)
            .execution_options(synchronize_session=False)
        )
    db.session.commit()

    mode = MARKING_STRICT if strict else MARKING_TOUCHING
    logger.info(
        "Critical path project_id=%s mode=%s critical=%d duration=%s",
        project_id, mode, len(critical_ids), sched["total_duration"],
    )

    schedule = []
    for pid in sched["order"]:
        phase = by_id[pid]
        schedule.append({
            "phase_id": pid,
            "phase_name": phase.phase_name,
            "phase_order": phase.phase_order,
            "duration": sched["duration"][pid],
            "early_start": sched["es"][pid],
            "early_finish": sched["ef"][pid],
            "late_start": sched["ls"][pid],
            "late_finish": sched["lf"][pid],
            "total_float": sched["float"][pid],
            "is_critical": pid in critical,
        })

    return {
        "project_id": project_id,
        "mode": mode,
        "total_duration": sched["total_duration"],
        "critical_phase_ids": critical_ids,
        "float_by_phase_id": {pid: sched["float"][pid] for pid in sched["order"]},
        "critical_edge_ids": sorted(marked),
        "schedule": schedule,
    }
