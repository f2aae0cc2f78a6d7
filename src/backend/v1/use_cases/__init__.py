"""Use-case level logic.

These modules implement the panel rules (invoice compliance, pay readiness,
audit traffic light, payroll updates) over rows returned by the integrations.

They should be:
- deterministic
- unit-testable
- free of web/framework code
"""
