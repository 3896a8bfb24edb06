"""Scans a project: runs its build tool and builds the canonical dependency tree."""

import logging
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple, Union

from .drivers import BuildToolDriver
from .models import DependencyTree
from .tree_builder import MAX_TREE_DEPTH, DependencyTreeBuilder

logger = logging.getLogger(__name__)


@contextmanager
def temporary_output_dir(prefix: str = "deptree-") -> Iterator[Path]:
    """Create a temporary directory and delete it on exit. Deletion failures are only logged."""
    path = Path(tempfile.mkdtemp(prefix=prefix))
    try:
        yield path
    finally:
        try:
            shutil.rmtree(path)
        except OSError as e:
            logger.warning(f"Could not delete temporary directory {path}: {e}")


def read_graph_files(files: Sequence[Path]) -> List[Tuple[str, bytes]]:
    """Read the per-module graph files, keeping their order."""
    return [(path.name, path.read_bytes()) for path in files]


class TreeScanner:
    """Builds the dependency tree of a project with a build tool driver."""

    def __init__(
        self,
        project_dir: Union[str, Path],
        driver: BuildToolDriver,
        max_depth: int = MAX_TREE_DEPTH
    ):
        self.project_dir = Path(project_dir)
        self.driver = driver
        self.max_depth = max_depth

    def build_tree(self) -> Optional[DependencyTree]:
        """
        Build the project's dependency tree.

        Returns:
            The full dependency tree, or None if the build tool is not installed

        Raises:
            ParseError: If the build tool wrote a malformed module graph
        """
        pkg_type = self.driver.pkg_type
        if not self.driver.is_installed():
            logger.error(
                f"Could not scan {pkg_type} project dependencies, "
                f"because the {pkg_type} CLI is not in the PATH."
            )
            return None

        with temporary_output_dir(prefix=f"deptree-{pkg_type}-") as output_dir:
            files = self.driver.generate_dependency_files(output_dir)
            logger.info(f"Building dependency tree from {len(files)} module files")
            return self.create_dependency_tree(files)

    def create_dependency_tree(self, files: Sequence[Path]) -> DependencyTree:
        """Build the tree from per-module graph files already written by the driver."""
        builder = DependencyTreeBuilder(self.driver.pkg_type, max_depth=self.max_depth)
        return builder.build_tree(read_graph_files(files), self.project_dir)
