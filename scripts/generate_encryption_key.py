"""Print a fresh EMAIL_ENCRYPTION_KEY (base64 of 32 random bytes, AES-256).

Usage:
    uv run python -m scripts.generate_encryption_key
"""

import base64

from cryptography.hazmat.primitives.ciphers.aead import AESGCM


def main() -> None:
    key = AESGCM.generate_key(bit_length=256)
    print(base64.b64encode(key).decode("ascii"))


if __name__ == "__main__":
    main()
