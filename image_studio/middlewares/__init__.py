from __future__ import annotations

from image_studio.middlewares.body_limit import BodyLimitMiddleware

__all__ = ["BodyLimitMiddleware"]
