from .education_app import ToolRequest, ToolResult, EducationAppClient

__all__ = ["ToolRequest", "ToolResult", "EducationAppClient"]
