"""Entry point for ``python -m mdfeedback.mcp``."""

from mdfeedback.mcp.server import main

if __name__ == "__main__":
    main()
