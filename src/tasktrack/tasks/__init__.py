"""
Task subsystem.

Components:
- task_models.py: data structures (Task, Subtask, TaskStatus, TaskDocument)
- task_store.py: JSON document persistence + create/get/update/delete/list
- dependency_graph.py: validated dependency edges, audit and repair
- status_workflow.py: status bookkeeping and derived completion
- next_task.py: ranking of actionable tasks
- complexity.py: complexity scoring, expansion and subtask clearing
- task_api.py: bulk import helpers
"""
