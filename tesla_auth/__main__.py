"""Allow ``python -m tesla_auth``."""

from .cli import main

raise SystemExit(main())
