"""
Persistence collaborators implementing core.ports.TaskTable.

- sqlite_table.py: local SQLite file
- rest_table.py: hosted table over the PostgREST API
"""
