"""submodule-helper: Keep a repository and its submodules in step."""

# Guard against deleted CWD (e.g. directory removed by another process).
# rich crashes on import if os.getcwd() fails, so recover before any imports.
import os

try:
    os.getcwd()
except (OSError, PermissionError):
    os.chdir(os.path.expanduser("~"))

from ._version import __version__
from .core import (
    BatchOrchestrator,
    BranchAction,
    BranchListing,
    BranchReconciler,
    BranchResult,
    CheckoutError,
    CommitError,
    CommitOrchestrator,
    GitOperations,
    GitRepository,
    HelperConfig,
    NetworkError,
    OperationResult,
    RepoAccessError,
    RepositoryStatus,
    Submodule,
    SubmoduleHelperError,
    SubmoduleWorkspace,
    SyncOrchestrator,
    UserCancelled,
    app,
    find_submodules,
    load_config,
    open_workspace,
    parse_submodule_status,
)
from .formatters import OutputFormatter
from .interaction import ConsoleInteraction, NullInteraction, UserInteraction
from .schema import get_tool_schema

__all__ = [
    # Version
    "__version__",
    # CLI
    "app",
    # Models
    "BranchAction",
    "BranchListing",
    "BranchResult",
    "HelperConfig",
    "OperationResult",
    "RepositoryStatus",
    "Submodule",
    # Errors
    "CheckoutError",
    "CommitError",
    "NetworkError",
    "RepoAccessError",
    "SubmoduleHelperError",
    "UserCancelled",
    # Operations
    "BatchOrchestrator",
    "BranchReconciler",
    "CommitOrchestrator",
    "GitOperations",
    "GitRepository",
    "SubmoduleWorkspace",
    "SyncOrchestrator",
    # Functions
    "find_submodules",
    "get_tool_schema",
    "load_config",
    "open_workspace",
    "parse_submodule_status",
    # Interaction and output
    "ConsoleInteraction",
    "NullInteraction",
    "OutputFormatter",
    "UserInteraction",
]
