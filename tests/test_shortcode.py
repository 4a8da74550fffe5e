"""Tests for short code generation and allocation."""

import pytest

from shortener.exceptions import AllocationError, NameTaken, ValidationError
from shortener.shortcode import CodeAllocator, ShortCodeGenerator


class FixedGenerator(ShortCodeGenerator):
    """Always produces the same code for a given length."""

    def generate_random(self, length=None):
        return "a" * (length or self.default_length)


class TestShortCodeGenerator:
    """Test short code generation."""

    def test_generate_random(self):
        """Test random code generation."""
        generator = ShortCodeGenerator()

        code = generator.generate_random()
        assert len(code) == 8
        assert all(c in "0123456789abcdef" for c in code)
        assert generator.is_valid_format(code)

    def test_generate_random_custom_length(self):
        """Test random code with custom length."""
        generator = ShortCodeGenerator(default_length=6)

        assert len(generator.generate_random()) == 6
        assert len(generator.generate_random(length=11)) == 11

    def test_generate_random_varies(self):
        generator = ShortCodeGenerator()
        codes = {generator.generate_random() for _ in range(200)}
        assert len(codes) > 190

    def test_is_valid_format(self):
        """Test format validation."""
        assert ShortCodeGenerator.is_valid_format("abc123")
        assert ShortCodeGenerator.is_valid_format("abc_123")
        assert ShortCodeGenerator.is_valid_format("test-code.v2")

        # Invalid formats
        assert not ShortCodeGenerator.is_valid_format("")
        assert not ShortCodeGenerator.is_valid_format("ABC")
        assert not ShortCodeGenerator.is_valid_format("abc 123")
        assert not ShortCodeGenerator.is_valid_format("abc@123")


@pytest.mark.asyncio
class TestCodeAllocator:
    """Test reservation of short codes in the store."""

    async def test_custom_name_normalized(self, store):
        allocator = CodeAllocator(store)

        record = await allocator.allocate("https://example.com", custom_name="My Link!")

        assert record.short_code == "mylink"
        assert (await store.get("mylink")).original_url == "https://example.com"

    async def test_unusable_custom_name_falls_back_to_random(self, store):
        allocator = CodeAllocator(store)

        record = await allocator.allocate("https://example.com", custom_name="!!!")

        assert len(record.short_code) == 8

    @pytest.mark.parametrize("name", ["style.css", "logo.PNG", "api", "favicon.ico", "x" * 51])
    async def test_rejected_custom_names(self, store, name):
        allocator = CodeAllocator(store)

        with pytest.raises(ValidationError):
            await allocator.allocate("https://example.com", custom_name=name)

        assert len(store.fast) == 0

    async def test_taken_custom_name(self, store):
        allocator = CodeAllocator(store)
        await allocator.allocate("https://example.com/first", custom_name="dup")

        with pytest.raises(NameTaken):
            await allocator.allocate("https://example.com/second", custom_name="dup")

        assert (await store.get("dup")).original_url == "https://example.com/first"

    async def test_collision_escalates_to_longer_code(self, store):
        allocator = CodeAllocator(store, generator=FixedGenerator(), max_collision_retries=3)
        await store.put("aaaaaaaa", "https://example.com/taken")

        record = await allocator.allocate("https://example.com/new")

        assert record.short_code == "a" * 12

    async def test_allocation_gives_up(self, store):
        allocator = CodeAllocator(store, generator=FixedGenerator(), max_collision_retries=2)
        await store.put("a" * 8, "https://example.com/one")
        await store.put("a" * 12, "https://example.com/two")

        with pytest.raises(AllocationError):
            await allocator.allocate("https://example.com/three")

    async def test_expiration_applied(self, store):
        allocator = CodeAllocator(store)

        record = await allocator.allocate("https://example.com", expiration_days=7)

        assert (record.expires_at - record.created_at).days == 7
