"""
Phase Tracking Platform
Service layer — scheduling core.

Submodules:
    - dependency_graph:      phase edges (default chain, custom edges, cycle guard)
    - phase_lifecycle:       phase status machine and early access
    - critical_path:         CPM forward/backward passes and float
    - cascade_impact:        decayed delay propagation over successors
    - recovery_suggestions:  ranked remediation strategies for a warning
    - schedule_optimizer:    advisory schedule recommendations
    - project_service:       project + phase setup
    - phase_events:          outbound event bus for lifecycle changes
    - notification:          in-app notification records
"""
