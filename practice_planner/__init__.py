"""
Practice Planner - round and lane scheduling for dog-sports club practices.

This package contains the complete application:
- core: Framework-agnostic planning logic (sets, events, validation)
- infrastructure: Database persistence
- api: FastAPI routes and dependencies
- client: Live client state, debounced edits and the HTTP client
- config: Application configuration
"""

__version__ = "0.1.0"
