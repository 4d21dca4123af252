"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskPolicy, EditSession) and timestamp helpers
- task_store.py: bounded-retention store over a TaskTable collaborator
- task_api.py: small high-level helpers used by the front end
"""
