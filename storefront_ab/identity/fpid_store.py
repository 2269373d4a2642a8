"""
Durable first-party identifier (FPID) store.

The FPID is issued by the relay endpoint on first contact and kept in an
HTTP-only cookie for ~13 months. Its format (``<millis>.<random>``) mirrors
the GA4 client id but consumers must treat it as opaque.
"""

import logging
from typing import Callable, Mapping, Optional, Tuple

from ..entropy import EntropySource, SystemEntropy, now_millis
from ..metrics import FPID_ISSUED
from ..models.experiment_models import CookieWrite, ExperimentConfig

logger = logging.getLogger(__name__)

FPID_RANDOM_RANGE = 1_000_000_000


class IdentifierStore:
    """Reads and provisions the fpid cookie"""

    def __init__(
        self,
        config: ExperimentConfig = None,
        entropy: EntropySource = None,
        clock: Callable[[], int] = now_millis
    ):
        self.config = config or ExperimentConfig()
        self.entropy = entropy or SystemEntropy()
        self.clock = clock

    def peek(self, cookies: Mapping[str, str]) -> Optional[str]:
        """Return the current identifier without provisioning one"""
        fpid = cookies.get(self.config.fpid_cookie)
        return fpid or None

    def get_or_create(self, cookies: Mapping[str, str]) -> Tuple[str, Optional[CookieWrite]]:
        """
        Resolve the visitor's identifier, issuing a new one if absent.

        Two first-contact requests racing here each issue an id; the last
        cookie written wins.

        Returns:
            (fpid, cookie write or None)
        """
        existing = self.peek(cookies)
        if existing is not None:
            return existing, None

        fpid = self.generate()
        FPID_ISSUED.inc()
        logger.info(f"New FPID issued: {self.preview(fpid)}")

        cookie = CookieWrite(
            name=self.config.fpid_cookie,
            value=fpid,
            max_age=self.config.fpid_max_age,
            http_only=True,
        )
        return fpid, cookie

    def generate(self) -> str:
        return f"{self.clock()}.{self.entropy.randbelow(FPID_RANDOM_RANGE)}"

    def preview(self, fpid: Optional[str]) -> Optional[str]:
        """
        Truncated form of an identifier, safe to return or log.

        At most fpid_preview_length characters are shown, and never more than
        half of the value.
        """
        if not fpid:
            return None
        visible = min(self.config.fpid_preview_length, len(fpid) // 2)
        return fpid[:visible] + "..."
