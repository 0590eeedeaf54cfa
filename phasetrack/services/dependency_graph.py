"""
Phase Dependency Graph — Service Layer.

Holds the directed predecessor → successor edge set of one project:
    - generate_default_edges: sequential finish_to_start chain by phase_order
    - add_edge:               validated custom edge (scope, type, cycle, duplicate)
    - remove_edge:            hard delete
    - edges_of:               all edges with phase names, in phase order

Every mutation appends an audit record in the same transaction.

Usage:
    from phasetrack.services.dependency_graph import add_edge

    edge = add_edge(project_id=1, predecessor_id=10, successor_id=12,
                    dependency_type="finish_to_start", actor_id=7)
"""

import logging

from sqlalchemy import select
from sqlalchemy.orm import aliased

from phasetrack.core.exceptions import (
    ConflictError,
    GraphError,
    NotFoundError,
    ValidationError,
)
from phasetrack.models import db
from phasetrack.models.audit import write_audit
from phasetrack.models.phase import (
    DEPENDENCY_TYPES,
    Phase,
    PhaseDependency,
    validate_no_cycle,
)
from phasetrack.models.project import Project
from phasetrack.utils.helpers import parse_number

logger = logging.getLogger(__name__)

DEFAULT_DEPENDENCY_TYPE = "finish_to_start"
DEFAULT_WEIGHT_FACTOR = 1.0


def _get_project(project_id: int) -> Project:
    project = db.session.get(Project, project_id)
    if not project:
        raise NotFoundError(resource="Project", resource_id=project_id)
    return project


def _get_scoped_phase(project_id: int, phase_id: int) -> Phase:
    """Load a phase, treating one from another project as missing."""
    phase = db.session.execute(
        select(Phase).where(Phase.id == phase_id, Phase.project_id == project_id)
    ).scalar_one_or_none()
    if not phase:
        raise NotFoundError(resource="Phase", resource_id=phase_id)
    return phase


def _edge_exists(predecessor_id: int, successor_id: int) -> bool:
    return db.session.execute(
        select(PhaseDependency.id).where(
            PhaseDependency.predecessor_phase_id == predecessor_id,
            PhaseDependency.successor_phase_id == successor_id,
        )
    ).first() is not None


# ── Default chain ────────────────────────────────────────────────────────────


def generate_default_edges(project_id: int, actor_id: int | None = None, *, commit: bool = True) -> list[PhaseDependency]:
    """
    Chain consecutive phases with finish_to_start edges (lag 0, weight 1.0).

    Pairs that already have an edge are skipped, so repeated calls are
    harmless.  Default edges start out marked critical because a plain
    chain is its own critical path.

    Returns:
        The newly created edges (empty when the chain already exists).
    """
    _get_project(project_id)
    phases = db.session.execute(
        select(Phase).where(Phase.project_id == project_id).order_by(Phase.phase_order)
    ).scalars().all()

    created = []
    for pred, succ in zip(phases, phases[1:]):
        if _edge_exists(pred.id, succ.id):
            continue
        edge = PhaseDependency(
            project_id=project_id,
            predecessor_phase_id=pred.id,
            successor_phase_id=succ.id,
            dependency_type=DEFAULT_DEPENDENCY_TYPE,
            lag_days=0,
            weight_factor=DEFAULT_WEIGHT_FACTOR,
            is_critical_path=True,
        )
        db.session.add(edge)
        db.session.flush()
        write_audit(
            entity_type="phase_dependency",
            entity_id=edge.id,
            action="dependency.create",
            actor_id=actor_id,
            project_id=project_id,
            note="Default sequential dependency",
            diff={"predecessor_phase_id": pred.id, "successor_phase_id": succ.id},
        )
        created.append(edge)

    if commit:
        db.session.commit()
    logger.info("Default dependencies generated project_id=%s created=%d", project_id, len(created))
    return created


# ── Custom edges ─────────────────────────────────────────────────────────────


def add_edge(
    project_id: int,
    predecessor_id: int,
    successor_id: int,
    dependency_type: str = DEFAULT_DEPENDENCY_TYPE,
    lag_days=0,
    weight_factor=DEFAULT_WEIGHT_FACTOR,
    actor_id: int | None = None,
) -> PhaseDependency:
    """
    Add a custom dependency between two phases of the same project.

    Raises:
        NotFoundError: project or either phase missing (or in another project).
        ValidationError: unknown dependency type, negative weight, non-integer lag.
        GraphError: self-reference, or the edge would close a cycle.
        ConflictError: an edge for this (predecessor, successor) pair exists.
    """
    _get_project(project_id)

    if dependency_type not in DEPENDENCY_TYPES:
        raise ValidationError(
            f"Invalid dependency_type: {dependency_type}",
            details={"dependency_type": sorted(DEPENDENCY_TYPES)},
        )
    if isinstance(lag_days, bool) or not isinstance(lag_days, int):
        raise ValidationError("lag_days must be an integer", details={"lag_days": lag_days})
    weight_factor = parse_number(weight_factor, "weight_factor", minimum=0)

    if predecessor_id == successor_id:
        raise GraphError(
            "A phase cannot depend on itself",
            details={"phase_id": predecessor_id},
        )

    _get_scoped_phase(project_id, predecessor_id)
    _get_scoped_phase(project_id, successor_id)

    if _edge_exists(predecessor_id, successor_id):
        raise ConflictError(
            resource="PhaseDependency",
            field="predecessor_phase_id/successor_phase_id",
            value=f"{predecessor_id}->{successor_id}",
        )

    if not validate_no_cycle(db.session, successor_id, predecessor_id):
        logger.warning(
            "Rejected cyclic dependency project_id=%s %s->%s",
            project_id, predecessor_id, successor_id,
        )
        raise GraphError(
            "Adding this dependency would create a cycle",
            details={"predecessor_phase_id": predecessor_id, "successor_phase_id": successor_id},
        )

    edge = PhaseDependency(
        project_id=project_id,
        predecessor_phase_id=predecessor_id,
        successor_phase_id=successor_id,
        dependency_type=dependency_type,
        lag_days=lag_days,
        weight_factor=weight_factor,
        is_critical_path=False,
    )
    db.session.add(edge)
    db.session.flush()
    write_audit(
        entity_type="phase_dependency",
        entity_id=edge.id,
        action="dependency.create",
        actor_id=actor_id,
        project_id=project_id,
        diff={
            "predecessor_phase_id": predecessor_id,
            "successor_phase_id": successor_id,
            "dependency_type": dependency_type,
            "lag_days": lag_days,
            "weight_factor": weight_factor,
        },
    )
    db.session.commit()
    logger.info(
        "PhaseDependency created id=%s project_id=%s %s->%s",
        edge.id, project_id, predecessor_id, successor_id,
    )
    return edge


def remove_edge(edge_id: int, actor_id: int | None = None) -> None:
    """Hard-delete an edge."""
    edge = db.session.get(PhaseDependency, edge_id)
    if not edge:
        raise NotFoundError(resource="PhaseDependency", resource_id=edge_id)

    project_id = edge.project_id
    snapshot = {
        "predecessor_phase_id": edge.predecessor_phase_id,
        "successor_phase_id": edge.successor_phase_id,
        "dependency_type": edge.dependency_type,
    }
    db.session.delete(edge)
    write_audit(
        entity_type="phase_dependency",
        entity_id=edge_id,
        action="dependency.delete",
        actor_id=actor_id,
        project_id=project_id,
        diff=snapshot,
    )
    db.session.commit()
    logger.info("PhaseDependency deleted id=%s project_id=%s", edge_id, project_id)


# ── Queries ──────────────────────────────────────────────────────────────────


def edges_of(project_id: int) -> list[dict]:
    """All edges of a project with phase names, by predecessor then successor order."""
    _get_project(project_id)
    pred = aliased(Phase)
    succ = aliased(Phase)
    rows = db.session.execute(
        select(PhaseDependency)
        .join(pred, PhaseDependency.predecessor_phase_id == pred.id)
        .join(succ, PhaseDependency.successor_phase_id == succ.id)
        .where(PhaseDependency.project_id == project_id)
        .order_by(pred.phase_order, succ.phase_order)
    ).scalars().all()
    return [edge.to_dict() for edge in rows]


def load_edges(project_id: int) -> list[PhaseDependency]:
    """Raw edge rows for the analysis services."""
    return db.session.execute(
        select(PhaseDependency).where(PhaseDependency.project_id == project_id)
    ).scalars().all()
