import pytest

from file_catalogue import config
from file_catalogue.exceptions import ConfigurationError


@pytest.mark.parametrize(
    "spec,expected",
    [
        ("MD5,SHA-256", ["MD5", "SHA-256"]),
        ("sha256;md5", ["SHA-256", "MD5"]),
        ("SHA1, SHA-512", ["SHA-1", "SHA-512"]),
        ("MD5,md5", ["MD5"]),
    ],
)
def test_parse_digest_methods(spec, expected):
    assert config.parse_digest_methods(spec) == expected


def test_unsupported_digest_method():
    with pytest.raises(ConfigurationError):
        config.parse_digest_methods("MD5,CRC32")


def test_required_digests_always_present():
    cfg = config.CatalogueConfig.from_strings("cat.sqlite", digests="SHA-1")
    assert cfg.digest_methods == ["SHA-1", "MD5", "SHA-256"]


def test_digest_column():
    assert config.digest_column("SHA-256") == "SHA256"
    assert config.digest_column("md5") == "MD5"


def test_invalid_mime_method():
    with pytest.raises(ConfigurationError):
        config.CatalogueConfig(mime_method="guess")
