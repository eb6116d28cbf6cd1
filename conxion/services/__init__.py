"""Services Layer — the imperative shell around the pure rules in core/.

Invariants:
    - A service loads rows, hands them to a core rule, and writes the outcome
    - Rule failures surface as RuleViolationError; routes pick the HTTP status

Design Decisions:
    - One service per aggregate (connection, sync, reference, event, trip);
      cross-aggregate side effects (notifications, report mirrors) go through
      the owning service
"""
