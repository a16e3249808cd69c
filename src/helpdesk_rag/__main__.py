"""Entry point for the helpdesk-rag MCP server."""

from helpdesk_rag.server import create_server


def main() -> None:
    """Run the helpdesk-rag MCP server."""
    server = create_server()
    server.run(transport="stdio")


if __name__ == "__main__":
    main()
