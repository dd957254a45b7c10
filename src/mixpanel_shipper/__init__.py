"""Package initialization for mixpanel-shipper.

Having this file allows relative imports (e.g. `from .models import ...`) to
resolve under tooling (mypy/ruff) and matches the CLI usage pattern
`python -m mixpanel_shipper ship` documented in the DESIGN notes.
"""

__all__ = []
