"""FastMCP server exposing CRM schema templates, validation and provisioning."""
