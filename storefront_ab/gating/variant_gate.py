"""
Variant gate: experiment assignment ahead of every page request.

A visitor without a valid ab-group cookie is drawn into one of two arms with
equal probability. The arm is persisted client-side and never changed while
the cookie lives.
"""

import logging
import re
from typing import Mapping, Optional, Tuple

from ..entropy import EntropySource, SystemEntropy
from ..metrics import GATE_FAIL_OPEN, VARIANT_ASSIGNMENTS
from ..models.experiment_models import (
    CookieWrite,
    ExperimentConfig,
    Variant,
    VisitorSession,
    utcnow
)

logger = logging.getLogger(__name__)


# Sub-resource and non-page traffic that must never touch experiment state
UNGATED_PATH = re.compile(
    r"^/(?:api(?:/|$)|_next/static|_next/image|favicon\.ico$|health$|metrics(?:/|$))"
    r"|\.(?:png|jpe?g|svg|gif|ico|webp|css|js|map)$",
    re.IGNORECASE
)


class VariantGate:
    """
    Assigns and persists the experiment arm exactly once per visitor.

    Assignment rules (applied in order):
    1. Valid ab-group cookie present -> keep it, write nothing
    2. Cookie absent or invalid -> draw one bit, write the cookie
    3. Entropy source unavailable -> serve the default arm, write nothing
    """

    def __init__(
        self,
        config: ExperimentConfig = None,
        entropy: EntropySource = None
    ):
        self.config = config or ExperimentConfig()
        self.entropy = entropy or SystemEntropy()

    def read(self, cookies: Mapping[str, str]) -> Optional[Variant]:
        """Return the stored arm, or None if the visitor is not yet assigned"""
        return Variant.parse(cookies.get(self.config.assignment_cookie))

    def assign(self, cookies: Mapping[str, str]) -> Tuple[VisitorSession, Optional[CookieWrite]]:
        """
        Resolve the visitor's arm.

        Args:
            cookies: Request cookies

        Returns:
            (session, cookie write or None)
        """
        existing = self.read(cookies)
        if existing is not None:
            return VisitorSession(variant=existing), None

        raw = cookies.get(self.config.assignment_cookie)
        if raw is not None:
            logger.warning(f"Discarding invalid assignment cookie value: {raw!r}")

        try:
            bit = self.entropy.random_bit()
        except Exception as e:
            GATE_FAIL_OPEN.inc()
            logger.warning(
                f"Entropy source unavailable ({e}), serving default arm "
                f"{self.config.default_variant.value}"
            )
            return VisitorSession(variant=self.config.default_variant), None

        variant = Variant.CONTROL if bit == 0 else Variant.TEST
        VARIANT_ASSIGNMENTS.labels(variant=variant.value).inc()
        logger.info(f"New variant assigned: {variant.value}")

        cookie = CookieWrite(
            name=self.config.assignment_cookie,
            value=variant.value,
            max_age=self.config.assignment_max_age,
            http_only=False,  # read client-side for display/debug logic
        )
        session = VisitorSession(variant=variant, assigned_at=utcnow(), is_new=True)
        return session, cookie

    def should_gate(self, path: str) -> bool:
        """True for top-level page navigations, False for assets and the relay endpoint"""
        relay_path = self.config.relay_path.rstrip("/")
        if path == relay_path or path.startswith(relay_path + "/"):
            return False
        return UNGATED_PATH.search(path) is None
