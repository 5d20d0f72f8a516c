"""
Redemption code generation.

Codes are uppercase alphanumeric, drawn from the OS CSPRNG. The existence
check here only makes collisions rare; the unique constraint on
gift_cards.code is what actually rejects a duplicate.
"""
import logging
import secrets
import string
from typing import Callable

from ..utils.exceptions import StoreWriteError

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


class CodeGenerator:
    """
    Produces collision-checked gift card codes.

    Args:
        exists: Callable returning True if a code is already in the ledger
        length: Code length
        max_attempts: Collisions tolerated before giving up
    """

    def __init__(self, exists: Callable[[str], bool], length: int = 10, max_attempts: int = 10):
        self._exists = exists
        self.length = length
        self.max_attempts = max_attempts

    def random_code(self) -> str:
        return ''.join(secrets.choice(CODE_ALPHABET) for _ in range(self.length))

    def generate_unique_code(self) -> str:
        """
        Generate a code not currently present in the ledger.

        Raises:
            StoreWriteError: If every attempt collided
        """
        for attempt in range(1, self.max_attempts + 1):
            code = self.random_code()
            if not self._exists(code):
                return code
            logger.warning(f"Gift card code collision on attempt {attempt}/{self.max_attempts}")

        raise StoreWriteError(
            f"Could not generate a unique gift card code after {self.max_attempts} attempts"
        )
