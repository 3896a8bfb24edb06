"""Turns raw dependency graph nodes into canonical tree nodes."""

from typing import Iterable, Optional, Set

from .models import DependencyGraphNode, DependencyTree, GeneralInfo, License, Scope

UNRESOLVED_SUFFIX = " [unresolved]"


def normalize_scopes(labels: Iterable[str]) -> Set[Scope]:
    """Map raw scope labels to Scopes. No labels yields the single default scope."""
    scopes = {Scope(label) for label in labels}
    if not scopes:
        scopes.add(Scope())
    return scopes


def create_general_info(node: DependencyGraphNode, pkg_type: str, path: Optional[str] = None) -> GeneralInfo:
    return GeneralInfo(
        group_id=node.group_id,
        artifact_id=node.artifact_id,
        version=node.version,
        path=path,
        pkg_type=pkg_type,
    )


def get_node_name(general_info: GeneralInfo, unresolved: bool) -> str:
    """
    Get the display name of a tree node.

    A module (a node with a path) is named after its artifact. Any other
    dependency is named by its component id, i.e. group:artifact:version.
    Unresolved dependencies get an " [unresolved]" suffix.
    """
    suffix = UNRESOLVED_SUFFIX if unresolved else ""
    if general_info.path and general_info.path.strip():
        return general_info.artifact_id + suffix
    return general_info.component_id + suffix


def create_node(node: DependencyGraphNode, pkg_type: str, path: Optional[str] = None) -> DependencyTree:
    """Create a childless tree node for a graph node."""
    general_info = create_general_info(node, pkg_type, path)
    return DependencyTree(
        name=get_node_name(general_info, node.unresolved),
        general_info=general_info,
        scopes=normalize_scopes(node.scopes),
        licenses={License()},
    )
