"""In-memory resource provider for engine and command line tests.

Usage:
    from resource_mock import GroupInstance, GroupResource, MockGroupBackend

    backend = MockGroupBackend()
    backend.add_group("admins", members=["alice"])
    engine = ConvergenceEngine(GroupResource(backend))

    engine.set(GroupInstance(group_name="admins", members=["bob"]))
    assert backend.stored("admins").members == ["alice", "bob"]
"""

from .backend import SCOPE_FLAGS, GroupScope, MockGroup, MockGroupBackend, scope_from_flags
from .group import GroupInstance, GroupResource, LookupGroupResource, ReadOnlyGroupResource

__all__ = [
    "SCOPE_FLAGS",
    "GroupInstance",
    "GroupResource",
    "GroupScope",
    "LookupGroupResource",
    "MockGroup",
    "MockGroupBackend",
    "ReadOnlyGroupResource",
    "scope_from_flags",
]
