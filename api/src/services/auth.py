"""
Trigger authentication.
"""

import hmac
import hashlib
import logging
from typing import Optional

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="

class AuthenticationFailure(Exception):
    """Raised when a trigger request carries a missing or invalid token."""
    pass

def compute_trigger_token(secret: bytes, trigger: str) -> str:
    """HMAC-SHA256 of the trigger value keyed with the shared secret, as hex."""
    return hmac.new(secret, trigger.encode("utf-8", errors="surrogatepass"), hashlib.sha256).hexdigest()

class TriggerAuthenticator:
    """Checks presented trigger tokens against the shared secret."""

    def verify(
        self,
        pipeline_name: str,
        secret: bytes,
        candidate_trigger: Optional[str],
        presented_token: Optional[str],
    ) -> bool:
        """
        Return True iff `presented_token` is the keyed digest of
        `candidate_trigger`. Never raises.
        """
        if not candidate_trigger or not presented_token or not secret:
            return False
        
        token = presented_token
        if token.startswith(SIGNATURE_PREFIX):
            token = token[len(SIGNATURE_PREFIX):]
        
        expected = compute_trigger_token(secret, candidate_trigger)
        # compare_digest only accepts ASCII str; compare as bytes instead
        matched = hmac.compare_digest(
            expected.encode("ascii"),
            token.encode("utf-8", errors="replace"),
        )
        if not matched:
            logger.debug(f"Trigger token mismatch for pipeline {pipeline_name}")
        return matched
