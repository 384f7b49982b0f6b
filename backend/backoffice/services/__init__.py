"""
Services Layer

Finance back-office business logic:
- status_machine: pure transition planning (no I/O)
- settlement: applies planned transitions with a status compare-and-swap
- compensation: lawyer ledger and salary payouts
- reporting: read-only dashboards and queues
Services take a Session and plain inputs and never see HTTP objects.
"""
