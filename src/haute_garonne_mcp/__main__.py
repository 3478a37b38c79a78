import sys

from haute_garonne_mcp.cli import main

sys.exit(main())  # type: ignore[call-arg]
