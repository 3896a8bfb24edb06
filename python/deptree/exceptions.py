"""Exceptions raised while building dependency trees."""


class DeptreeError(Exception):
    """Base class for all deptree errors."""


class ParseError(DeptreeError, ValueError):
    """A per-module dependency graph file is not well-formed."""


class TreeDepthError(DeptreeError):
    """The dependency graph is nested deeper than the configured limit."""


class CyclicGraphError(DeptreeError):
    """A dependency graph node was found among its own ancestors."""
