"""
Worker MCP gateway package.

This package exposes a catalog of callable tools over the Model Context
Protocol (JSON-RPC 2.0 over HTTP with event-stream replies):
- Tool registry with uniform failure containment
- In-process protocol channel between the HTTP layer and the tool server
- Request/reply correlation with a hard per-request timeout
- Bundled tools: arithmetic, web search, URL reading, sequential thinking
"""
