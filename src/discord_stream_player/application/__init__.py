"""
Application Layer

Contains the playback use cases and the services that orchestrate them.

Structure:
- services/: Playback orchestrator and progress tracker
- interfaces/: Port interfaces for infrastructure adapters
"""
