from gogauth.tools.builtin.google_auth import (
    GoogleAuthRevokeTool,
    GoogleAuthStartTool,
    GoogleAuthStatusTool,
    google_auth_tools,
)

__all__ = [
    "GoogleAuthRevokeTool",
    "GoogleAuthStartTool",
    "GoogleAuthStatusTool",
    "google_auth_tools",
]
