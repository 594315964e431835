"""
Scheduler subsystem.

Components:
- task_models.py: data structures (Task, ControlEvent, statuses)
- task_codec.py: wire encoding of queue entries
- task_store.py: JobStore adapters (in-memory, SQLite) + status reader
- task_executor.py: per-task timed execution
- task_registry.py: task id -> running executor handle
- task_dispatcher.py: polling loop over the todo and control channels
- task_api.py: client-side helpers (create / find / update / delete)
"""
