"""
Exception hierarchy for the transit core.

Only caller contract violations raise. Geometric or physical infeasibility
(a Lambert arc that does not converge, a ship that cannot make the trip in
its time budget) is reported by returning ``None`` from the solver and the
variant simply being absent from the plan list.
"""


class TransitError(Exception):
    """Base class for all transit-core errors."""


class UnknownNodeError(TransitError, KeyError):
    """A node id referenced by the caller does not exist in the system."""

    def __init__(self, node_id):
        self.node_id = node_id
        super().__init__(f"Unknown node id: {node_id!r}")

    def __str__(self) -> str:
        return self.args[0]


class SystemRootError(TransitError):
    """The system graph has no root node (a node without a parent)."""


class HierarchyError(TransitError):
    """A parent chain is cyclic or deeper than the configured limit."""


class ConfigError(TransitError, ValueError):
    """The planner configuration file is malformed."""


class InvalidModeError(TransitError, ValueError):
    """A transit mode record carries out-of-range values."""
