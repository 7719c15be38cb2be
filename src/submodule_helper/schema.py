"""MCP-compatible tool schema for AI agents."""

from __future__ import annotations

from ._version import __version__

_PATH_PROPERTY = {
    "type": "string",
    "description": "Path inside the main repository (default: current directory)",
    "default": ".",
}

_JSON_PROPERTY = {
    "type": "boolean",
    "description": "Output as JSON for machine parsing",
    "default": False,
}

_DRY_RUN_PROPERTY = {
    "type": "boolean",
    "description": "Report what would happen without changing anything",
    "default": False,
}

_RESULTS_OUTPUT = {
    "type": "object",
    "properties": {
        "operation": {"type": "string"},
        "results": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "path": {"type": "string"},
                    "name": {"type": "string"},
                    "success": {"type": "boolean"},
                    "operation": {"type": "string"},
                    "message": {"type": "string"},
                    "error": {"type": "string"},
                },
            },
        },
        "summary": {
            "type": "object",
            "properties": {
                "total": {"type": "integer"},
                "success": {"type": "integer"},
                "failed": {"type": "integer"},
            },
        },
    },
}


def get_tool_schema() -> dict:
    """Generate MCP-compatible tool schema for AI agents."""
    return {
        "name": "submodule-helper",
        "version": __version__,
        "description": "Checkout, commit, pull and push a git repository together with all of its submodules. Submodules are always processed before the main repository; a failing submodule is reported and skipped.",
        "usage": "submodule-helper <command> [options]",
        "tools": [
            {
                "name": "checkout",
                "description": "Check out a branch in every submodule (existing local branch, else a tracking branch for origin/<branch>, else a new branch from HEAD), then check it out in the main repository.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "branch": {
                            "type": "string",
                            "description": "Branch name. Required for non-interactive use.",
                        },
                        "path": _PATH_PROPERTY,
                        "remote": {
                            "type": "string",
                            "description": "Remote used to look up remote-tracking branches",
                            "default": "origin",
                        },
                        "json": _JSON_PROPERTY,
                    },
                    "required": ["branch"],
                },
                "outputSchema": _RESULTS_OUTPUT,
            },
            {
                "name": "commit",
                "description": "Stage and commit all pending changes with the same message in every dirty submodule, then in the main repository. Clean repositories are left alone.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "message": {
                            "type": "string",
                            "description": "Commit message. Required for non-interactive use.",
                        },
                        "path": _PATH_PROPERTY,
                        "dry_run": _DRY_RUN_PROPERTY,
                        "json": _JSON_PROPERTY,
                    },
                    "required": ["message"],
                },
                "outputSchema": _RESULTS_OUTPUT,
            },
            {
                "name": "sync",
                "description": "Pull repositories that are behind their upstream and push those that are ahead, submodules first.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "path": _PATH_PROPERTY,
                        "fetch": {
                            "type": "boolean",
                            "description": "Fetch each repository before comparing with its upstream",
                            "default": False,
                        },
                        "dry_run": _DRY_RUN_PROPERTY,
                        "json": _JSON_PROPERTY,
                    },
                    "required": [],
                },
                "outputSchema": _RESULTS_OUTPUT,
            },
            {
                "name": "status",
                "description": "Show branch, ahead/behind counts and working tree state of the main repository and each submodule.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "path": _PATH_PROPERTY,
                        "no_fetch": {
                            "type": "boolean",
                            "description": "Skip fetching from remotes (faster but may show stale data)",
                            "default": False,
                        },
                        "json": _JSON_PROPERTY,
                    },
                    "required": [],
                },
            },
            {
                "name": "list",
                "description": "List the submodules registered in the main repository.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "path": _PATH_PROPERTY,
                        "json": _JSON_PROPERTY,
                    },
                    "required": [],
                },
            },
        ],
    }
