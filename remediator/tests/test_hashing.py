import hashlib

from remediator.app.utils.hashing import HASH_PREFIX, compute_content_hash


def test_hash_is_prefixed_sha256_of_utf8():
    expected = hashlib.sha256("Öffnungszeiten".encode("utf-8")).hexdigest()

    assert compute_content_hash("Öffnungszeiten") == HASH_PREFIX + expected


def test_hash_is_deterministic_and_content_sensitive():
    assert compute_content_hash("Opening hours") == compute_content_hash("Opening hours")
    assert compute_content_hash("Opening hours") != compute_content_hash("Opening hours ")


def test_empty_text_has_a_hash():
    assert compute_content_hash("") == (
        "SHA-256:e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
    )
