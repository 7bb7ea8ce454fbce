from app.clients.cascade import CASCADE_PLAN, CascadeStep, delete_client
from app.clients.service import ClientCreationResult, ClientLifecycleService, StepResult, client_lifecycle_service

__all__ = [
    "CASCADE_PLAN",
    "CascadeStep",
    "ClientCreationResult",
    "ClientLifecycleService",
    "StepResult",
    "client_lifecycle_service",
    "delete_client",
]
