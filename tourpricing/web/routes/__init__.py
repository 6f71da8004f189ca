"""tourpricing web route modules.

Each module exports a `router` object (APIRouter instance) that the app in
tourpricing.web.app includes.
"""

from tourpricing.web.routes import health, pricing, progress

__all__ = ["health", "pricing", "progress"]
