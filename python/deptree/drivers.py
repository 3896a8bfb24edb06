"""Drivers running build tools to export per-module dependency graphs."""

import json
import logging
import os
import re
import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

from .parsers import NpmListingAdapter

logger = logging.getLogger(__name__)

# Gradle task added by the dependency tree plugin
GRADLE_TASK = "generateDependenciesGraphAsJson"
GRADLE_OUTPUT_DIR_PROPERTY = "com.jfrog.depsTreeOutputDir"

DEFAULT_TIMEOUT = 600


class BuildToolDriver:
    """
    Base class for build tool drivers.

    A driver knows whether its tool is available and how to write one JSON
    dependency graph per module of a project into a directory. Tool failures
    are logged and reported as an empty file list, never raised.
    """

    pkg_type = ""
    executable_name = ""

    def __init__(
        self,
        project_dir: Union[str, Path],
        env: Optional[Mapping[str, str]] = None,
        executable: Optional[str] = None,
        timeout: int = DEFAULT_TIMEOUT
    ):
        self.project_dir = Path(project_dir)
        self.env = dict(env or {})
        self.executable = executable
        self.timeout = timeout

    def find_executable(self) -> Optional[str]:
        """Locate the build tool executable."""
        return shutil.which(self.executable or self.executable_name)

    def is_installed(self) -> bool:
        return self.find_executable() is not None

    def generate_dependency_files(self, output_dir: Union[str, Path]) -> List[Path]:
        raise NotImplementedError

    def _run(self, args: List[str]) -> Optional[subprocess.CompletedProcess]:
        """Run the build tool in the project directory. Returns None if it could not be started."""
        executable = self.find_executable()
        if not executable:
            logger.error(f"{self.pkg_type} executable not found")
            return None

        cmd = [executable] + args
        env: Dict[str, str] = dict(os.environ)
        env.update(self.env)
        logger.info(f"Running: {' '.join(cmd)} (in {self.project_dir})")

        try:
            return subprocess.run(
                cmd,
                cwd=self.project_dir,
                env=env,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.error(f"{' '.join(cmd)} timed out after {self.timeout} seconds")
        except OSError as e:
            logger.error(f"Could not run {executable}: {e}")
        return None


class GradleDriver(BuildToolDriver):
    """Runs the Gradle dependency tree plugin, which writes one JSON file per subproject."""

    pkg_type = "gradle"
    executable_name = "gradle"

    def __init__(
        self,
        project_dir: Union[str, Path],
        env: Optional[Mapping[str, str]] = None,
        executable: Optional[str] = None,
        timeout: int = DEFAULT_TIMEOUT,
        init_script: Optional[Union[str, Path]] = None
    ):
        super().__init__(project_dir, env, executable, timeout)
        self.init_script = init_script

    def find_executable(self) -> Optional[str]:
        """Prefer an explicit executable, then the project's Gradle wrapper, then gradle on the PATH."""
        if self.executable:
            return shutil.which(self.executable)
        wrapper = self.project_dir / ('gradlew.bat' if os.name == 'nt' else 'gradlew')
        if wrapper.is_file():
            return str(wrapper)
        return shutil.which(self.executable_name)

    def generate_dependency_files(self, output_dir: Union[str, Path]) -> List[Path]:
        """
        Run the dependency tree task and collect its output.

        Args:
            output_dir: Existing directory the task writes its JSON files to

        Returns:
            The per-module JSON files, sorted by name, or [] on failure
        """
        output_dir = Path(output_dir)
        args = [GRADLE_TASK, "-q", f"-D{GRADLE_OUTPUT_DIR_PROPERTY}={output_dir}"]
        if self.init_script:
            args.extend(["--init-script", str(self.init_script)])

        result = self._run(args)
        if result is None:
            return []
        if result.returncode != 0:
            logger.error(f"Gradle failed with exit code {result.returncode}: {result.stderr.strip()}")
            return []

        files = sorted(output_dir.glob('*.json'))
        logger.info(f"Gradle generated {len(files)} dependency graph files")
        return files


class NpmDriver(BuildToolDriver):
    """Runs ``npm ls`` and converts its listing into a single module graph file."""

    pkg_type = "npm"
    executable_name = "npm"

    def generate_dependency_files(self, output_dir: Union[str, Path]) -> List[Path]:
        """
        List the installed packages and write the module graph.

        npm exits with 1 when packages are missing or invalid while still
        printing the listing, so the exit code alone is not treated as failure.

        Args:
            output_dir: Existing directory to write the module graph to

        Returns:
            A single-element list with the module graph file, or [] on failure
        """
        result = self._run(["ls", "--json", "--all"])
        if result is None:
            return []

        try:
            listing = json.loads(result.stdout or '{}')
        except ValueError as e:
            logger.error(f"npm ls returned invalid JSON (exit code {result.returncode}): {e}")
            return []
        if result.returncode != 0:
            logger.warning(f"npm ls reported problems: {result.stderr.strip()}")

        manifest = self._read_manifest()
        graph = NpmListingAdapter.to_module_graph(listing, manifest, default_name=self.project_dir.name)

        file_name = re.sub(r'[^A-Za-z0-9._-]', '_', graph['artifactId']) + '.json'
        output_file = Path(output_dir) / file_name
        with open(output_file, 'w') as f:
            json.dump(graph, f)
        logger.info(f"Wrote npm dependency graph to {output_file}")
        return [output_file]

    def _read_manifest(self) -> Dict:
        manifest_path = self.project_dir / 'package.json'
        try:
            with open(manifest_path, 'r') as f:
                return json.load(f)
        except FileNotFoundError:
            logger.warning(f"No package.json found in {self.project_dir}")
        except ValueError as e:
            logger.warning(f"Could not parse {manifest_path}: {e}")
        return {}


DRIVERS = {
    'gradle': GradleDriver,
    'npm': NpmDriver,
}

# Files marking the root of a project, per build tool
PROJECT_MARKERS = [
    ('gradle', ['settings.gradle', 'settings.gradle.kts', 'build.gradle', 'build.gradle.kts']),
    ('npm', ['package.json']),
]


def detect_build_tool(project_dir: Union[str, Path]) -> Optional[str]:
    """Detect the build tool of a project based on the files in its root directory."""
    project_dir = Path(project_dir)
    for tool, markers in PROJECT_MARKERS:
        if any((project_dir / marker).is_file() for marker in markers):
            return tool
    return None


def create_driver(
    tool: str,
    project_dir: Union[str, Path],
    env: Optional[Mapping[str, str]] = None,
    executable: Optional[str] = None,
    init_script: Optional[Union[str, Path]] = None
) -> BuildToolDriver:
    """Create the driver for a build tool name."""
    try:
        driver_class = DRIVERS[tool]
    except KeyError:
        raise ValueError(f"Unsupported build tool: {tool}") from None
    if init_script is None:
        return driver_class(project_dir, env=env, executable=executable)
    if driver_class is not GradleDriver:
        raise ValueError(f"Init scripts are not supported by {tool}")
    return driver_class(project_dir, env=env, executable=executable, init_script=init_script)
