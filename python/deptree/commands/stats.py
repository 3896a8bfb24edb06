"""Stats command for showing dependency tree statistics."""

import logging
from collections import Counter
from typing import Dict, Any

from ..models import DependencyTree
from ..normalizer import UNRESOLVED_SUFFIX

logger = logging.getLogger(__name__)


def collect_stats(tree: DependencyTree) -> Dict[str, Any]:
    """Collect statistics about a dependency tree.

    Args:
        tree: Root of the canonical dependency tree

    Returns:
        Node, module, component, depth, unresolved and per-scope counts
    """
    total_nodes = 0
    modules = 0
    unresolved = 0
    max_depth = 0
    components = set()
    scope_counts: Counter = Counter()

    # Depth is tracked alongside the nodes rather than through parent links
    stack = [(tree, 0)]
    while stack:
        node, depth = stack.pop()
        total_nodes += 1
        max_depth = max(max_depth, depth)
        info = node.general_info
        if info.path:
            # The synthetic root of a multi-module project has no artifact
            if info.artifact_id:
                modules += 1
        else:
            components.add(info.component_id)
            for scope in node.scopes:
                scope_counts[scope.name] += 1
        if node.name.endswith(UNRESOLVED_SUFFIX):
            unresolved += 1
        stack.extend((child, depth + 1) for child in node.children)

    return {
        'total_nodes': total_nodes,
        'modules': modules,
        'unique_components': len(components),
        'max_depth': max_depth,
        'unresolved': unresolved,
        'scopes': dict(sorted(scope_counts.items())),
    }


def show_stats(tree: DependencyTree) -> None:
    """Print statistics about a dependency tree."""
    stats = collect_stats(tree)
    logger.debug(f"Collected stats for {tree.name}: {stats}")

    print("Dependency Tree Statistics:")
    print(f"  Root: {tree.name}")
    print(f"  Total Nodes: {stats['total_nodes']}")
    print(f"  Modules: {stats['modules']}")
    print(f"  Unique Components: {stats['unique_components']}")
    print(f"  Max Depth: {stats['max_depth']}")
    print(f"  Unresolved: {stats['unresolved']}")
    if stats['scopes']:
        print("  Scopes:")
        for scope, count in stats['scopes'].items():
            print(f"    {scope}: {count}")
