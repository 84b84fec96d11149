"""
Upstream package: HTTP access to the d.velop prompt, identity and task services.

Modules:
- interface: error taxonomy
- client: one coroutine per upstream operation
- polling: prompt completion loop and citation link rewriting
"""

__all__ = ["client", "interface", "polling"]
