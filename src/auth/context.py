from dataclasses import dataclass


@dataclass
class InternalCallerContext:
    """Identity context for operator requests on /api/internal routes."""
    auth_method: str = "internal_secret"
    caller: str | None = None
