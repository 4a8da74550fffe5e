"""Short code generation and allocation."""

import logging
import secrets
import string
from typing import Optional

from .common.validators import MAX_SHORT_CODE_LENGTH, is_valid_short_code, normalize_custom_name
from .exceptions import AllocationError, NameTaken, ValidationError
from .store import HybridStore, UrlRecord


class ShortCodeGenerator:
    """Generate random short codes."""

    HEX_CHARS = string.digits + "abcdef"

    def __init__(self, default_length: int = 8):
        """Initialize short code generator.

        Args:
            default_length: Default length for generated codes
        """
        self.default_length = default_length

    def generate_random(self, length: Optional[int] = None) -> str:
        """Generate a random lowercase hex code.

        Args:
            length: Length of the code (uses default if not specified)

        Returns:
            Random short code
        """
        length = length or self.default_length
        return secrets.token_hex((length + 1) // 2)[:length]

    @staticmethod
    def is_valid_format(code: str) -> bool:
        """Check if code only uses characters allowed in short codes."""
        return bool(code) and all(c in string.ascii_lowercase + string.digits + ".-_" for c in code)


class CodeAllocator:
    """Turn an optional custom name into a short code reserved in the store.

    Reservation goes through HybridStore.put, an atomic insert-if-absent, so
    picking a code and claiming it happen in one step.
    """

    def __init__(
        self,
        store: HybridStore,
        generator: Optional[ShortCodeGenerator] = None,
        max_collision_retries: int = 5,
        escalated_length: int = 12,
        max_custom_length: int = MAX_SHORT_CODE_LENGTH,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.generator = generator or ShortCodeGenerator()
        self.max_collision_retries = max_collision_retries
        self.escalated_length = escalated_length
        self.max_custom_length = max_custom_length
        self.logger = logger or logging.getLogger(__name__)

    def normalize(self, custom_name: Optional[str]) -> Optional[str]:
        """Normalize and validate a custom name.

        Returns:
            The usable short code, or None to fall back to a random code

        Raises:
            ValidationError: If the normalized name is too long, reserved or
                ends with a static-file extension
        """
        short_code = normalize_custom_name(custom_name)
        if not short_code:
            if custom_name:
                self.logger.debug(f"Custom name {custom_name!r} normalized to nothing, using a random code")
            return None
        is_valid, error = is_valid_short_code(short_code, max_length=self.max_custom_length)
        if not is_valid:
            raise ValidationError(error)
        return short_code

    async def allocate(
        self,
        original_url: str,
        custom_name: Optional[str] = None,
        expiration_days: Optional[int] = None,
    ) -> UrlRecord:
        """Reserve a short code for `original_url` and return the stored record.

        Raises:
            ValidationError: If the custom name is unusable
            NameTaken: If the custom name is already assigned
            AllocationError: If no random code could be reserved
        """
        short_code = self.normalize(custom_name)
        if short_code:
            return await self.store.put(short_code, original_url, expiration_days)

        # Bounded retries, then once more with longer codes
        for length in (self.generator.default_length, self.escalated_length):
            for attempt in range(self.max_collision_retries):
                short_code = self.generator.generate_random(length)
                try:
                    record = await self.store.put(short_code, original_url, expiration_days)
                except NameTaken:
                    self.logger.debug(f"Collision on {short_code} (attempt {attempt + 1})")
                    continue
                return record
            self.logger.warning(
                f"{self.max_collision_retries} collisions at length {length}, escalating"
            )

        raise AllocationError("Unable to generate unique short code after multiple attempts")
