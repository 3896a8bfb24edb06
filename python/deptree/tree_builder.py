"""Builds canonical dependency trees from per-module dependency graphs."""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Sequence, Tuple, Union

from .exceptions import CyclicGraphError, ParseError, TreeDepthError
from .models import DependencyGraphNode, DependencyTree, GeneralInfo
from .normalizer import create_node
from .parsers import GraphParser

logger = logging.getLogger(__name__)

# Real-world dependency trees are far shallower than this
MAX_TREE_DEPTH = 256

Coordinates = Tuple[str, str, str]


def _coordinates(node: DependencyGraphNode) -> Coordinates:
    return (node.group_id, node.artifact_id, node.version)


def _merge_siblings(dependencies: List[DependencyGraphNode]) -> List[DependencyGraphNode]:
    """
    Merge repeated declarations of the same dependency under one parent.

    Declarations with the same coordinates and unresolved flag become one
    node at the position of the first declaration. Their scope labels are
    unioned and their dependency lists concatenated. The input nodes are
    left untouched.
    """
    merged: Dict[Tuple[str, str, str, bool], DependencyGraphNode] = {}
    for dependency in dependencies:
        existing = merged.get(dependency.key)
        if existing is None:
            merged[dependency.key] = DependencyGraphNode(
                group_id=dependency.group_id,
                artifact_id=dependency.artifact_id,
                version=dependency.version,
                scopes=list(dependency.scopes),
                unresolved=dependency.unresolved,
                dependencies=list(dependency.dependencies),
            )
            continue

        logger.debug(
            f"Merging repeated declaration of {':'.join(_coordinates(dependency))} "
            f"(scopes {existing.scopes} + {dependency.scopes})"
        )
        for scope in dependency.scopes:
            if scope not in existing.scopes:
                existing.scopes.append(scope)
        existing.dependencies.extend(dependency.dependencies)

    return list(merged.values())


def collapse_modules(
    modules: Sequence[DependencyTree],
    root_name: str,
    root_path: Union[str, Path],
    pkg_type: str = ""
) -> DependencyTree:
    """
    Combine per-module trees into the tree returned to the caller.

    - No modules: a leaf named after the scan root.
    - One module: the module itself becomes the root.
    - Several modules: a synthetic root named after the scan root, with the
      modules as children in the given order.
    """
    if len(modules) == 1:
        module = modules[0]
        module.parent = None
        return module

    root = DependencyTree(
        name=root_name,
        general_info=GeneralInfo(component_id=root_name, path=str(root_path), pkg_type=pkg_type),
    )
    for module in modules:
        root.add(module)
    return root


class DependencyTreeBuilder:
    """
    Builds the canonical tree of a project from its per-module graphs.

    Every graph node becomes exactly one tree node, in input order. The same
    dependency may appear many times under different parents: the result is a
    tree, not a DAG. Repeated declarations under the same parent are merged
    into one node carrying the union of their scopes.
    """

    def __init__(self, pkg_type: str, max_depth: int = MAX_TREE_DEPTH):
        """
        Initialize the builder.

        Args:
            pkg_type: Package type tag put on every node (gradle, npm)
            max_depth: Deepest dependency nesting accepted before failing
        """
        self.pkg_type = pkg_type
        self.max_depth = max_depth

    def build_tree(
        self,
        raw_graphs: Iterable[Tuple[str, bytes]],
        project_dir: Union[str, Path]
    ) -> DependencyTree:
        """
        Parse the raw per-module graphs of a project and build its tree.

        Args:
            raw_graphs: (source name, content) of each per-module graph file,
                in module order. The source name is only used in errors.
            project_dir: Root directory of the scanned project

        Returns:
            The module tree for a single module project, otherwise a root
            named after the project directory with one child per module

        Raises:
            ParseError: If any of the graphs is malformed
        """
        project_dir = Path(project_dir)
        modules = []
        for source, raw in raw_graphs:
            try:
                graph = GraphParser.parse(raw)
            except ParseError as e:
                raise ParseError(f"{source}: {e}") from e
            modules.append(self.build_module(graph, project_dir))
        logger.info(f"Built {len(modules)} module trees for {project_dir}")
        return collapse_modules(modules, project_dir.name, project_dir, self.pkg_type)

    def build_module(self, graph: DependencyGraphNode, module_path: Union[str, Path]) -> DependencyTree:
        """Build the tree of one module. Only the module node carries the path."""
        module_node = create_node(graph, self.pkg_type, path=str(module_path))
        self._populate(module_node, graph, 1, (_coordinates(graph),))
        return module_node

    def _populate(
        self,
        node: DependencyTree,
        graph: DependencyGraphNode,
        depth: int,
        ancestors: Tuple[Coordinates, ...]
    ) -> None:
        """Recursively add the children of a graph node to its tree node."""
        if not graph.dependencies:
            return
        if depth > self.max_depth:
            raise TreeDepthError(
                f"Dependency tree of {ancestors[0][1]} is deeper than {self.max_depth} levels"
            )

        for child_graph in _merge_siblings(graph.dependencies):
            coordinates = _coordinates(child_graph)
            # An ancestor repeated as a leaf is a cycle cut by the exporter; it is still rejected
            if coordinates in ancestors:
                chain = ' -> '.join(':'.join(c) for c in ancestors + (coordinates,))
                raise CyclicGraphError(
                    f"Dependency cycle detected: {chain} (dependencies repeating an ancestor are rejected, even as leaves)"
                )

            child = create_node(child_graph, self.pkg_type)
            node.add(child)
            self._populate(child, child_graph, depth + 1, ancestors + (coordinates,))
