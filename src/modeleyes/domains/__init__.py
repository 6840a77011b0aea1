"""Domain-Driven Design bounded contexts for ModelEyes.

- shared: kernel types and the error taxonomy
- ui_state: snapshots, elements, patches, diff and patch application
- state_cache: LRU-bounded snapshot and element stores
- context_compaction: budget-driven reduction of snapshots
"""
