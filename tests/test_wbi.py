"""Tests for WBI request signing."""
import hashlib
import re
from unittest.mock import MagicMock

import pytest

from bilidl.models.video import NavResponse
from bilidl.services.errors import ResolutionError
from bilidl.services.wbi import (
    MIXIN_KEY_ENC_TAB,
    WbiSigner,
    extract_key,
    mixin_key,
    sanitize,
    url_encode,
)

SEED_64 = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+?"
TEST_KEY = "0123456789abcdef0123456789abcdef"


class TestMixinKey:
    """Tests for mixin key derivation."""

    def test_table_is_a_permutation(self) -> None:
        """Test the table is a permutation of 0-63."""
        assert sorted(MIXIN_KEY_ENC_TAB) == list(range(64))

    def test_rearranges_and_truncates(self) -> None:
        """A 64-char seed yields the first 32 table-selected characters."""
        assert len(SEED_64) == 64
        mk = mixin_key(SEED_64)
        assert len(mk) == 32
        assert mk == "".join(SEED_64[i] for i in MIXIN_KEY_ENC_TAB[:32])

    def test_known_key_pair(self) -> None:
        """Published example fragments map to the published mixin key."""
        seed = "7cd084941338484aae1ad9425b84077c" + "4932caff0ff746eab6f01bf08b70ac45"
        assert mixin_key(seed) == "ea1db124af3c7062474693fa704f4ff8"

    def test_short_seed_degrades_without_padding(self) -> None:
        """Indices past the end of a short seed are skipped."""
        seed = SEED_64[:40]
        mk = mixin_key(seed)
        expected = "".join(seed[i] for i in MIXIN_KEY_ENC_TAB if i < 40)[:32]
        assert mk == expected
        assert len(mixin_key("abc")) <= 3


class TestSanitize:
    """Tests for value sanitization."""

    def test_removes_specials(self) -> None:
        """Test the stripped characters are removed."""
        assert sanitize("a!b'c(d)e*f~g") == "abcdefg"

    def test_keeps_everything_else(self) -> None:
        """Test other characters are untouched."""
        value = "中文 空格-_.&=%"
        assert sanitize(value) == value

    def test_idempotent(self) -> None:
        """Test sanitizing twice changes nothing."""
        value = "!!x(y)~~*'z"
        assert sanitize(sanitize(value)) == sanitize(value)


class TestUrlEncode:
    """Tests for query encoding."""

    def test_preserves_utf8(self) -> None:
        """Non-ASCII text is multi-byte percent-encoded, spaces become '+'."""
        assert url_encode("中文 空格") == "%E4%B8%AD%E6%96%87+%E7%A9%BA%E6%A0%BC"

    def test_reserved_characters(self) -> None:
        """Test encoding of reserved characters."""
        assert url_encode("a&b=c/d") == "a%26b%3Dc%2Fd"
        assert url_encode("abc-_.*") == "abc-_.*"


class TestExtractKey:
    """Tests for key fragment extraction."""

    def test_png_and_jpg(self) -> None:
        """Test key extraction from png and jpg URLs."""
        assert extract_key("https://i0.hdslb.com/bfs/wbi/abcd1234efgh5678.png") == "abcd1234efgh5678"
        assert extract_key("https://i0.hdslb.com/bfs/wbi/XYZ9.jpg") == "XYZ9"

    def test_rejects_other_urls(self) -> None:
        """Test rejection of other image URLs."""
        with pytest.raises(ResolutionError, match="failed to parse wbi key"):
            extract_key("https://i0.hdslb.com/bfs/wbi/abcd.webp")


class TestSigner:
    """Tests for parameter signing."""

    def test_sign_produces_rid_and_wts(self) -> None:
        """Test signing adds wts and a hex digest."""
        signer = WbiSigner.from_mixin_key(TEST_KEY)
        params, wts, w_rid = signer.sign([("z", "3"), ("a", "1"), ("b", "2")])

        assert [k for k, _ in params] == ["a", "b", "wts", "z"]
        assert wts > 0
        assert dict(params)["wts"] == str(wts)
        assert re.fullmatch(r"[0-9a-f]{32}", w_rid)

    def test_sign_is_deterministic_for_fixed_timestamp(self) -> None:
        """Test signing is order independent for a fixed timestamp."""
        signer = WbiSigner.from_mixin_key(TEST_KEY)
        first = signer.sign([("z", "3"), ("a", "1"), ("b", "2")], wts=1700000000)
        second = signer.sign([("b", "2"), ("z", "3"), ("a", "1")], wts=1700000000)
        assert first == second

        query = "a=1&b=2&wts=1700000000&z=3"
        expected = hashlib.md5((query + TEST_KEY).encode()).hexdigest()
        assert first[2] == expected

    def test_sign_sanitizes_and_encodes_values(self) -> None:
        """Test values are sanitized and form encoded before hashing."""
        signer = WbiSigner.from_mixin_key(TEST_KEY)
        params, _wts, w_rid = signer.sign([("keyword", "中文 (x)!")], wts=1)
        assert dict(params)["keyword"] == "中文 x"

        query = "keyword=%E4%B8%AD%E6%96%87+x&wts=1"
        assert w_rid == hashlib.md5((query + TEST_KEY).encode()).hexdigest()

    def test_clock_supplies_timestamp(self) -> None:
        """Test the injected clock supplies the timestamp."""
        signer = WbiSigner(TEST_KEY, clock=lambda: 1234.9)
        _params, wts, _w_rid = signer.sign([])
        assert wts == 1234

    def test_published_vector(self) -> None:
        """Test the widely published signing example."""
        signer = WbiSigner.from_mixin_key("ea1db124af3c7062474693fa704f4ff8")
        params, wts, w_rid = signer.sign(
            [("foo", "114"), ("bar", "514"), ("zab", "1919810")], wts=1702204169
        )

        assert [k for k, _ in params] == ["bar", "foo", "wts", "zab"]
        assert wts == 1702204169
        assert w_rid == "8f6f2b5b3d485fe1886cec6a0be8c5d4"


class TestFetch:
    """Tests for fetching key fragments."""

    def test_fetch_builds_signer_from_nav(self) -> None:
        """Test a signer is built from the nav payload."""
        client = MagicMock()
        client.get_json.return_value = NavResponse.model_validate(
            {
                "data": {
                    "wbi_img": {
                        "img_url": "https://i0.hdslb.com/bfs/wbi/7cd084941338484aae1ad9425b84077c.png",
                        "sub_url": "https://i0.hdslb.com/bfs/wbi/4932caff0ff746eab6f01bf08b70ac45.png",
                    }
                }
            }
        )
        signer = WbiSigner.fetch(client)
        assert signer.mixin_key == "ea1db124af3c7062474693fa704f4ff8"
        client.get_json.assert_called_once()

    def test_fetch_missing_data(self) -> None:
        """Test a nav response without data."""
        client = MagicMock()
        client.get_json.return_value = NavResponse(data=None)
        with pytest.raises(ResolutionError, match="nav data missing"):
            WbiSigner.fetch(client)

    def test_fetch_missing_image_url(self) -> None:
        """A nav payload without both image URLs is a resolution failure."""
        client = MagicMock()
        client.get_json.return_value = NavResponse.model_validate(
            {"data": {"wbi_img": {"img_url": "https://i0.hdslb.com/bfs/wbi/7cd084941338484aae1ad9425b84077c.png"}}}
        )
        with pytest.raises(ResolutionError, match="nav data missing wbi_img"):
            WbiSigner.fetch(client)
