"""
Recovery Suggestion Engine.

Maps a risk warning (raised by an external risk-detection collaborator) to
a ranked list of remediation strategies:

    1. pick the catalog entries for ``warning.type``
       (+ the universal strategies every warning gets)
    2. instantiate them against the warning's predicted impact
    3. score each on a 0–100 scale, sort descending, keep the top five

Scoring weights encode business judgement; they live in the constants
below, not inline.

Usage:
    from phasetrack.services.recovery_suggestions import (
        RiskWarning, generate_recovery_suggestions,
    )

    warning = RiskWarning.from_dict(payload)
    suggestions = generate_recovery_suggestions(warning)
"""

import logging
import math
from dataclasses import asdict, dataclass, field

from sqlalchemy import select

from phasetrack.core.exceptions import NotFoundError, ValidationError
from phasetrack.models import db
from phasetrack.models.phase import Phase, PhaseDependency
from phasetrack.models.project import Project

logger = logging.getLogger(__name__)

WARNING_SEVERITIES = ("critical", "urgent", "warning", "advisory")

WARNING_TYPES = (
    "timeline_deviation",
    "budget_overrun",
    "resource_conflict",
    "quality_gate_violation",
    "client_approval_delay",
    "dependency_blockage",
    "skill_gap",
    "capacity_overload",
    "early_access_abuse",
)

MAX_SUGGESTIONS = 5

# ── Scoring weights ──────────────────────────────────────────────────────────

SUCCESS_WEIGHT = 0.30           # per point of success probability
SPEED_WEIGHT = 25               # full marks for instant recovery
SPEED_HORIZON_DAYS = 30         # recovery at or beyond this earns nothing
COST_WEIGHT = 20                # full marks for savings or zero cost
COST_HORIZON = 10000            # cost at or beyond this earns nothing
EFFORT_POINTS = {"low": 15, "medium": 10, "high": 5}
CRITICAL_QUICK_WIN_BONUS = 10   # critical warning + recovery within QUICK_WIN_DAYS
QUICK_WIN_DAYS = 3


# ═════════════════════════════════════════════════════════════════════════════
# Input / output types
# ═════════════════════════════════════════════════════════════════════════════


@dataclass
class RiskWarning:
    """Read-only warning produced outside this service."""

    type: str
    severity: str
    project_id: int
    phase_ids: list[int] = field(default_factory=list)
    impact_days: float = 0
    impact_cost: float = 0

    @classmethod
    def from_dict(cls, data: dict, project_id: int | None = None) -> "RiskWarning":
        """
        Build from the collaborator's JSON shape:
        ``{type, severity, project_id, phase_ids[], predicted_impact: {days, cost}}``.

        Raises:
            ValidationError: missing or malformed fields.
        """
        if not isinstance(data, dict):
            raise ValidationError("Warning payload must be an object")

        errors = {}
        wtype = data.get("type")
        if not isinstance(wtype, str) or not wtype.strip():
            errors["type"] = "required"
        severity = data.get("severity")
        if severity not in WARNING_SEVERITIES:
            errors["severity"] = f"must be one of {', '.join(WARNING_SEVERITIES)}"

        pid = project_id if project_id is not None else data.get("project_id")
        try:
            pid = int(pid)
        except (TypeError, ValueError, OverflowError):
            errors["project_id"] = "must be an integer"

        raw_phase_ids = data.get("phase_ids") or []
        phase_ids = []
        if not isinstance(raw_phase_ids, list):
            errors["phase_ids"] = "must be a list of integers"
        else:
            try:
                phase_ids = [int(x) for x in raw_phase_ids]
            except (TypeError, ValueError, OverflowError):
                errors["phase_ids"] = "must be a list of integers"

        impact = data.get("predicted_impact") or {}
        days = cost = 0
        if not isinstance(impact, dict):
            errors["predicted_impact"] = "must be an object with days and cost"
        else:
            try:
                days = float(impact.get("days") or 0)
                cost = float(impact.get("cost") or 0)
            except (TypeError, ValueError):
                errors["predicted_impact"] = "days and cost must be numbers"
            else:
                if not (math.isfinite(days) and math.isfinite(cost)):
                    errors["predicted_impact"] = "days and cost must be finite numbers"
                elif days < 0:
                    errors["predicted_impact"] = "days must be >= 0"

        if errors:
            raise ValidationError("Invalid warning", details=errors)

        return cls(
            type=wtype.strip(),
            severity=severity,
            project_id=pid,
            phase_ids=phase_ids,
            impact_days=days,
            impact_cost=cost,
        )


@dataclass
class RecoverySuggestion:
    id: str
    title: str
    description: str
    strategy_type: str
    effort_required: str
    success_probability: int
    estimated_recovery_days: int
    cost_impact: float
    prerequisites: list[str]
    implementation_steps: list[str]
    risks: list[str]

    def to_dict(self) -> dict:
        return asdict(self)


# ═════════════════════════════════════════════════════════════════════════════
# Strategy catalog
# ═════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class StrategyTemplate:
    """
    One catalog entry.  ``days`` and ``cost`` are callables of
    ``(warning, context)`` so entries can scale with the predicted impact.
    """

    key: str
    title: str
    description: str
    strategy_type: str
    effort_required: str
    success_probability: int
    days: object
    cost: object
    prerequisites: tuple
    implementation_steps: tuple
    risks: tuple

    def build(self, warning: RiskWarning, context: dict) -> RecoverySuggestion:
        description = self.description
        if callable(description):
            description = description(warning, context)
        return RecoverySuggestion(
            id=self.key,
            title=self.title,
            description=description,
            strategy_type=self.strategy_type,
            effort_required=self.effort_required,
            success_probability=self.success_probability,
            estimated_recovery_days=int(self.days(warning, context)),
            cost_impact=self.cost(warning, context),
            prerequisites=list(self.prerequisites),
            implementation_steps=list(self.implementation_steps),
            risks=list(self.risks),
        )


def _fixed(value):
    return lambda warning, context: value


def _days_share(ratio):
    return lambda warning, context: math.ceil(warning.impact_days * ratio)


PARALLEL_EXECUTION = StrategyTemplate(
    key="parallel_execution",
    title="Parallel Phase Execution",
    description=lambda w, ctx: (
        f"Execute {len(ctx['parallel_phase_ids'])} phases in parallel to recover "
        f"{math.ceil(w.impact_days * 0.4)} days"
    ),
    strategy_type="parallel_execution",
    effort_required="high",
    success_probability=75,
    days=_days_share(0.4),
    cost=lambda w, ctx: len(ctx["parallel_phase_ids"]) * 1000,
    prerequisites=("Resource availability", "Dependency analysis", "Risk assessment"),
    implementation_steps=(
        "Verify phase independence",
        "Allocate additional resources",
        "Set up parallel tracking",
        "Monitor progress closely",
    ),
    risks=("Resource conflicts", "Quality impact", "Coordination overhead"),
)

RESOURCE_ACCELERATION = StrategyTemplate(
    key="resource_acceleration",
    title="Resource Acceleration",
    description="Add additional skilled resources to accelerate critical path activities",
    strategy_type="resource_reallocation",
    effort_required="high",
    success_probability=80,
    days=_days_share(0.6),
    cost=lambda w, ctx: w.impact_days * 600,
    prerequisites=("Available resources", "Budget approval", "Onboarding plan"),
    implementation_steps=(
        "Identify resource requirements",
        "Source qualified personnel",
        "Execute rapid onboarding",
        "Integrate with existing team",
    ),
    risks=("Onboarding time", "Team dynamics", "Knowledge transfer"),
)

SCOPE_OPTIMIZATION = StrategyTemplate(
    key="scope_optimization",
    title="Scope Optimization",
    description="Defer non-critical features to future phases to meet core deadlines",
    strategy_type="scope_modification",
    effort_required="medium",
    success_probability=90,
    days=_days_share(0.7),
    cost=_fixed(-2000),
    prerequisites=("Stakeholder approval", "Feature prioritization", "Scope documentation"),
    implementation_steps=(
        "Analyze feature criticality",
        "Negotiate scope changes",
        "Update project plan",
        "Communicate changes",
    ),
    risks=("Stakeholder satisfaction", "Future scope creep", "Quality perception"),
)

EFFICIENCY_OPTIMIZATION = StrategyTemplate(
    key="efficiency_optimization",
    title="Process Efficiency Optimization",
    description="Implement efficiency measures to reduce labor costs and improve productivity",
    strategy_type="resource_reallocation",
    effort_required="medium",
    success_probability=85,
    days=_fixed(7),
    cost=lambda w, ctx: -w.impact_cost * 0.3,
    prerequisites=("Process analysis", "Tool implementation", "Team training"),
    implementation_steps=(
        "Identify efficiency bottlenecks",
        "Implement automation tools",
        "Optimize workflows",
        "Monitor productivity metrics",
    ),
    risks=("Implementation resistance", "Short-term productivity dip", "Tool adoption"),
)

BUDGET_REALLOCATION = StrategyTemplate(
    key="budget_reallocation",
    title="Strategic Budget Reallocation",
    description="Reallocate budget from lower-priority initiatives to critical project needs",
    strategy_type="resource_reallocation",
    effort_required="low",
    success_probability=70,
    days=_fixed(3),
    cost=_fixed(0),
    prerequisites=("Executive approval", "Portfolio analysis", "Impact assessment"),
    implementation_steps=(
        "Analyze project portfolio",
        "Identify reallocation opportunities",
        "Get stakeholder approval",
        "Execute budget transfer",
    ),
    risks=("Other project delays", "Stakeholder conflicts", "Resource disruption"),
)

CROSS_TRAINING = StrategyTemplate(
    key="cross_training",
    title="Rapid Cross-Training Program",
    description="Implement intensive cross-training to create resource flexibility and reduce bottlenecks",
    strategy_type="resource_reallocation",
    effort_required="high",
    success_probability=80,
    days=_fixed(14),
    cost=_fixed(5000),
    prerequisites=("Training materials", "Mentor availability", "Time allocation"),
    implementation_steps=(
        "Identify skill gaps",
        "Design training program",
        "Pair with experienced mentors",
        "Validate competency",
    ),
    risks=("Training time investment", "Competency validation", "Quality consistency"),
)

CONTRACTOR_AUGMENTATION = StrategyTemplate(
    key="contractor_augmentation",
    title="Specialized Contractor Engagement",
    description="Bring in specialized contractors to handle specific skill requirements",
    strategy_type="resource_reallocation",
    effort_required="medium",
    success_probability=85,
    days=_fixed(5),
    cost=lambda w, ctx: w.impact_cost * 1.2,
    prerequisites=("Contractor sourcing", "Budget approval", "Security clearance"),
    implementation_steps=(
        "Define skill requirements",
        "Source qualified contractors",
        "Execute contracting process",
        "Integrate with team",
    ),
    risks=("Contractor availability", "Knowledge retention", "Integration challenges"),
)

QUALITY_RECOVERY = StrategyTemplate(
    key="quality_recovery",
    title="Intensive Quality Recovery",
    description="Implement focused quality improvement measures to address violations",
    strategy_type="early_access",
    effort_required="high",
    success_probability=90,
    days=_fixed(10),
    cost=_fixed(3000),
    prerequisites=("Quality team assignment", "Defect analysis", "Recovery plan"),
    implementation_steps=(
        "Conduct root cause analysis",
        "Implement quality controls",
        "Execute intensive testing",
        "Validate quality metrics",
    ),
    risks=("Schedule impact", "Resource allocation", "Quality consistency"),
)

APPROVAL_ACCELERATION = StrategyTemplate(
    key="approval_acceleration",
    title="Approval Process Acceleration",
    description="Implement measures to expedite client approval processes",
    strategy_type="timeline_adjustment",
    effort_required="medium",
    success_probability=75,
    days=_days_share(0.5),
    cost=_fixed(1000),
    prerequisites=("Client engagement", "Process optimization", "Communication plan"),
    implementation_steps=(
        "Analyze approval bottlenecks",
        "Engage client stakeholders",
        "Streamline approval process",
        "Implement progress tracking",
    ),
    risks=("Client relationship", "Approval quality", "Communication gaps"),
)

DEPENDENCY_WORKAROUND = StrategyTemplate(
    key="dependency_workaround",
    title="Dependency Workaround Strategy",
    description="Implement alternative approaches to bypass blocked dependencies",
    strategy_type="timeline_adjustment",
    effort_required="high",
    success_probability=70,
    days=_days_share(0.6),
    cost=_fixed(2000),
    prerequisites=("Alternative analysis", "Technical feasibility", "Risk assessment"),
    implementation_steps=(
        "Analyze dependency requirements",
        "Design workaround solution",
        "Implement alternative approach",
        "Validate functionality",
    ),
    risks=("Technical complexity", "Future integration", "Quality impact"),
)

SKILL_ACQUISITION = StrategyTemplate(
    key="skill_acquisition",
    title="Rapid Skill Acquisition",
    description="Implement intensive training or bring in experts to address skill gaps",
    strategy_type="resource_reallocation",
    effort_required="high",
    success_probability=80,
    days=_fixed(10),
    cost=_fixed(4000),
    prerequisites=("Skill assessment", "Training resources", "Expert availability"),
    implementation_steps=(
        "Assess skill requirements",
        "Design acquisition strategy",
        "Execute training/hiring",
        "Validate competency",
    ),
    risks=("Learning curve", "Competency validation", "Time investment"),
)

CAPACITY_REBALANCING = StrategyTemplate(
    key="capacity_rebalancing",
    title="Capacity Rebalancing",
    description="Redistribute workload and add capacity to address overload conditions",
    strategy_type="resource_reallocation",
    effort_required="medium",
    success_probability=85,
    days=_fixed(7),
    cost=_fixed(2500),
    prerequisites=("Capacity analysis", "Resource availability", "Workload assessment"),
    implementation_steps=(
        "Analyze capacity constraints",
        "Redistribute workload",
        "Add additional capacity",
        "Monitor balance",
    ),
    risks=("Team disruption", "Knowledge transfer", "Quality consistency"),
)

ACCESS_CONTROL = StrategyTemplate(
    key="access_control",
    title="Access Control Optimization",
    description="Implement stricter controls and processes for early access management",
    strategy_type="timeline_adjustment",
    effort_required="low",
    success_probability=95,
    days=_fixed(2),
    cost=_fixed(500),
    prerequisites=("Policy definition", "System configuration", "Team training"),
    implementation_steps=(
        "Review access patterns",
        "Implement stricter controls",
        "Train team on policies",
        "Monitor compliance",
    ),
    risks=("Team resistance", "Process overhead", "Productivity impact"),
)

STAKEHOLDER_ENGAGEMENT = StrategyTemplate(
    key="stakeholder_engagement",
    title="Enhanced Stakeholder Engagement",
    description="Improve communication and stakeholder alignment to prevent future issues",
    strategy_type="timeline_adjustment",
    effort_required="low",
    success_probability=90,
    days=_fixed(1),
    cost=_fixed(0),
    prerequisites=("Stakeholder mapping", "Communication plan", "Regular updates"),
    implementation_steps=(
        "Map key stakeholders",
        "Develop communication strategy",
        "Implement regular updates",
        "Gather feedback",
    ),
    risks=("Over-communication", "Stakeholder fatigue", "Information overload"),
)

CATALOG = {
    "timeline_deviation": (PARALLEL_EXECUTION, RESOURCE_ACCELERATION, SCOPE_OPTIMIZATION),
    "budget_overrun": (EFFICIENCY_OPTIMIZATION, BUDGET_REALLOCATION),
    "resource_conflict": (CROSS_TRAINING, CONTRACTOR_AUGMENTATION),
    "quality_gate_violation": (QUALITY_RECOVERY,),
    "client_approval_delay": (APPROVAL_ACCELERATION,),
    "dependency_blockage": (DEPENDENCY_WORKAROUND,),
    "skill_gap": (SKILL_ACQUISITION,),
    "capacity_overload": (CAPACITY_REBALANCING,),
    "early_access_abuse": (ACCESS_CONTROL,),
}

UNIVERSAL_STRATEGIES = (STAKEHOLDER_ENGAGEMENT,)


# ═════════════════════════════════════════════════════════════════════════════
# Engine
# ═════════════════════════════════════════════════════════════════════════════


def score_suggestion(suggestion: RecoverySuggestion, severity: str) -> float:
    """0–100, higher is better. Not rounded, so ties are rare and stable."""
    score = suggestion.success_probability * SUCCESS_WEIGHT
    days = suggestion.estimated_recovery_days
    score += (1 - min(days, SPEED_HORIZON_DAYS) / SPEED_HORIZON_DAYS) * SPEED_WEIGHT
    if suggestion.cost_impact <= 0:
        score += COST_WEIGHT
    else:
        score += (1 - min(suggestion.cost_impact, COST_HORIZON) / COST_HORIZON) * COST_WEIGHT
    score += EFFORT_POINTS.get(suggestion.effort_required, 0)
    if severity == "critical" and days <= QUICK_WIN_DAYS:
        score += CRITICAL_QUICK_WIN_BONUS
    return score


def parallel_candidates(project_id: int, phase_ids) -> list[int]:
    """Warning phases with no incoming edge, i.e. free to run alongside others."""
    if not phase_ids:
        return []
    gated = set(db.session.execute(
        select(PhaseDependency.successor_phase_id).where(
            PhaseDependency.project_id == project_id,
            PhaseDependency.successor_phase_id.in_(list(phase_ids)),
        )
    ).scalars().all())
    return [pid for pid in phase_ids if pid not in gated]


def _validate_scope(warning: RiskWarning) -> None:
    if not db.session.get(Project, warning.project_id):
        raise NotFoundError(resource="Project", resource_id=warning.project_id)
    if not warning.phase_ids:
        return
    known = set(db.session.execute(
        select(Phase.id).where(
            Phase.project_id == warning.project_id,
            Phase.id.in_(warning.phase_ids),
        )
    ).scalars().all())
    missing = [pid for pid in warning.phase_ids if pid not in known]
    if missing:
        raise NotFoundError(resource="Phase", resource_id=missing[0])


def generate_recovery_suggestions(warning: RiskWarning) -> list[dict]:
    """
    Ranked remediation strategies for one warning (1 to MAX_SUGGESTIONS).

    Unknown warning types still receive the universal strategies.

    Raises:
        NotFoundError: unknown project, or a warning phase outside it.
    """
    _validate_scope(warning)

    context = {"parallel_phase_ids": parallel_candidates(warning.project_id, warning.phase_ids)}
    templates = list(CATALOG.get(warning.type, ()))
    if warning.type not in CATALOG:
        logger.info("No targeted strategies for warning type=%s", warning.type)

    candidates = []
    for template in templates + list(UNIVERSAL_STRATEGIES):
        if template is PARALLEL_EXECUTION and not context["parallel_phase_ids"]:
            continue
        candidates.append(template.build(warning, context))

    scored = [(score_suggestion(s, warning.severity), s) for s in candidates]
    scored.sort(key=lambda pair: pair[0], reverse=True)
    top = [s.to_dict() for _, s in scored[:MAX_SUGGESTIONS]]

    logger.info(
        "Recovery suggestions project_id=%s type=%s severity=%s returned=%d",
        warning.project_id, warning.type, warning.severity, len(top),
    )
    return top
