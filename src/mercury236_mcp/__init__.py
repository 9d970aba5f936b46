"""Mercury 236 power meter polling over RS-485, exposed through MCP."""

__version__ = "0.1.0"
