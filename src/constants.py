"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    MANIFEST_ERROR = 3
    RESOLUTION_ERROR = 4
    ENTRY_POINT_ERROR = 5


class LaunchMode(Enum):
    """Terminal action of a launch, decided once from configuration.

    Args:
        Enum (string): Launch mode name.
    """

    RUN = "run"
    DRY_RUN = "dryrun"
    PRINT_CLASSPATH = "classpath"


class ArchiveKind(Enum):
    """Shape of a root artifact on disk.

    Args:
        Enum (string): Archive kind name.
    """

    DIRECTORY = "directory"
    PACKAGED = "packaged"


class ConfigKeys:  # pylint: disable=too-few-public-methods
    """Configuration keys understood by the launcher."""

    MAIN = "thin.main"
    DRYRUN = "thin.dryrun"
    CLASSPATH = "thin.classpath"
    ROOT = "thin.root"
    ARCHIVE = "thin.archive"
    NAME = "thin.name"
    PROFILE = "thin.profile"
    REPO = "thin.repo"
    OFFLINE = "thin.offline"
    WORKERS = "thin.workers"
    DEBUG = "debug"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    REPOSITORY_URL_MAVEN = "https://repo1.maven.org/maven2"
    DEFAULT_CACHE_ROOT = "~/.thinrun"
    CACHE_REPOSITORY_DIR = "repository"
    DEFAULT_EXTENSION = "zip"
    DESCRIPTOR_EXTENSION = "pom"
    ABSENT_MARKER_SUFFIX = ".none"
    METADATA_FILE = "maven-metadata.xml"
    POM_NAMESPACE = "http://maven.apache.org/POM/4.0.0"

    MANIFEST_DIR = ".thin"
    MANIFEST_SUFFIX = ".deps"
    DEFAULT_MANIFEST_NAME = "thin"
    ENTRY_POINT_MODULE = "__main__.py"
    ARCHIVE_PREFIX = "maven:"
    # Conventional build outputs, tried in order before the working directory
    BUILD_OUTPUT_DIRS = ["build/lib", "src"]

    RUNTIME_SCOPES = ["compile", "runtime"]
    DEFAULT_SCOPE = "runtime"

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    LOG_LEVEL_ENV = "THINRUN_LOG_LEVEL"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
    DEFAULT_WORKERS = 8
