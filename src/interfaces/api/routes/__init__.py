"""API routes package.

Keep this module free of side effects: routers are imported and included
explicitly in `src/interfaces/api/app.py`.
"""

__all__: list[str] = []
