"""
Services Layer

Scheduling business logic:
- Pure algorithms (assigner, validator, conflict report) over immutable snapshots
- Stateful workflows (regeneration coordinator, editor) over repositories
- Do NOT depend on HTTP request/response objects
"""
