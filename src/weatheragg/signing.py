# hmac-sha256 signatures over request uris, shared by the signing cli and the verifying gateway

from __future__ import annotations
import argparse
import hashlib
import hmac
from typing import List, Optional

from . import config


class SigningKeyError(ValueError):
    pass


def load_secret_key(raw: Optional[str] = None) -> bytes:
    # key is configured as hex, with an even number of digits
    if raw is None:
        raw = config.SECRET_KEY
    try:
        return bytes.fromhex(raw)
    except ValueError as exc:
        raise SigningKeyError(f"SECRET_KEY must be hex encoded: {exc}") from exc


def sign(key: bytes, message: str) -> str:
    return hmac.new(key, message.encode("utf-8"), hashlib.sha256).hexdigest()


def verify(key: bytes, message: str, signature: bytes) -> bool:
    expected = hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()
    return hmac.compare_digest(expected, signature)


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        prog="weatheragg-sign",
        description="Print the hex HMAC-SHA256 of MESSAGE, keyed by the SECRET_KEY environment variable.",
    )
    parser.add_argument("message", help="usually the request uri, e.g. '/?place=Portland'")
    args = parser.parse_args(argv)

    try:
        key = load_secret_key()
    except SigningKeyError as exc:
        parser.exit(1, f"weatheragg-sign: {exc}\n")
    print(sign(key, args.message))


if __name__ == "__main__":
    main()
