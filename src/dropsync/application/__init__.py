"""
Application layer - use cases and orchestration.

Package Structure:
    protocols.py        - Collaborator interfaces (store, KV, notifier, lock)
    deletion_queue.py   - Persisted deletion queue
    cleanup_state.py    - Cleanup cycle state persistence
    recent_edits.py     - Recent-edit tracker and edit observer
    cleanup_machine.py  - Multi-pass cleanup state machine
    reports.py          - Report subjects and HTML bodies
    locking.py          - Best-effort lock helper
    sync_service.py     - Sync orchestrator
    cleanup_service.py  - Cleanup orchestrator
    container.py        - Wiring of concrete infrastructure

Usage:
    from dropsync.application import Container

    container = Container(settings)
    container.sync_service().run()
    container.cleanup_service().run()
"""

from dropsync.application.container import Container

__all__ = ["Container"]
