"""
Application Layer

Contains use cases, query handlers, and application services.
This layer orchestrates domain objects and infrastructure to fulfill use cases.

Structure:
- queries/: Read operations (GetQueueQuery)
- services/: QueueCoordinator for writes, QueueWatcher for live projections
- interfaces/: Port interfaces for infrastructure adapters
"""
