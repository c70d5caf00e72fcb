"""Local capabilities: deterministic handlers for common requests."""

from tools.luna.capabilities.registry import CapabilityRegistry, create_default_registry

__all__ = [
    "CapabilityRegistry",
    "create_default_registry",
]
