from gogauth.tools.protocol import BaseTool, SessionContext, ToolDefinition

__all__ = ["BaseTool", "SessionContext", "ToolDefinition"]
