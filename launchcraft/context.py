"""Definition of the installation context, defining where files are installed.
"""

from pathlib import Path

from .util import get_launcher_dir

from typing import Optional


class Context:
    """Context of the game's installation and runtime. This defines the main directory
    shared by all versions, where versions metadata, assets and libraries are stored, and
    the working directory of a particular instance, where the game's JAR file is stored
    and from where the game will run.
    """

    def __init__(self,
        main_dir: Optional[Path] = None,
        work_dir: Optional[Path] = None
    ) -> None:
        """Construct an installation context.

        Note that these paths can perfectly be relative paths, they are computed to
        absolute paths when needed, so you don't have to care. By default they will be
        resolved relatively to the current working directory (of the executing Python
        program).

        :param main_dir: The main directory where versions, assets and libraries are
        installed. If not specified this path will be set to the launcher's directory in
        the user's data directory.
        :param work_dir: The instance directory, this defaults to `main_dir` if not
        specified.
        """

        main_dir = get_launcher_dir() if main_dir is None else main_dir
        self.main_dir = main_dir
        self.work_dir = main_dir if work_dir is None else work_dir
        self.versions_dir = main_dir / "versions"
        self.assets_dir = main_dir / "assets"
        self.libraries_dir = main_dir / "libraries"
        self.version_manifest_file = main_dir / "version_manifest.json"

    def version_metadata_file(self, version: str) -> Path:
        """Return the file where the metadata of the given version is cached.
        """
        return self.versions_dir / f"{version}.json"

    def natives_dir(self, version: str) -> Path:
        """Return the directory where native libraries of the given version are
        downloaded and extracted.
        """
        return self.versions_dir / version / "natives"

    def game_dir(self) -> Path:
        """Return the directory from where the client is run, where the game stores
        things like saves, resource packs and options.
        """
        return self.work_dir / ".minecraft"

    def client_jar_file(self) -> Path:
        return self.work_dir / "client.jar"

    def server_dir(self) -> Path:
        return self.work_dir / "server"

    def __repr__(self) -> str:
        return f"<Context {self.main_dir} work_dir={self.work_dir}>"
