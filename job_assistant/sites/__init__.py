from .base import SiteAdapter
from .registry import AdapterRegistry, adapter_class_for, register_adapter, registered_adapters
from .linkedin import LinkedInAdapter

__all__ = [
    "SiteAdapter", "AdapterRegistry", "LinkedInAdapter",
    "adapter_class_for", "register_adapter", "registered_adapters",
]
