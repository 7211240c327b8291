from __future__ import annotations

import secrets

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_TOKEN_LENGTH = 8


def normalize_redeem_code(raw_code: str) -> str:
    return raw_code.strip().upper()


def generate_raw_codes(
    *,
    count: int,
    token_length: int = CODE_TOKEN_LENGTH,
    existing_codes: set[str] | None = None,
) -> list[str]:
    if count <= 0:
        raise ValueError("count must be positive")
    if token_length <= 0:
        raise ValueError("token_length must be positive")

    existing = existing_codes if existing_codes is not None else set()
    generated: list[str] = []
    attempts = 0
    max_attempts = max(100, count * 50)

    while len(generated) < count:
        attempts += 1
        if attempts > max_attempts:
            raise RuntimeError("unable to generate unique redeem codes")

        token = "".join(secrets.choice(CODE_ALPHABET) for _ in range(token_length))
        if token in existing:
            continue

        existing.add(token)
        generated.append(token)

    return generated
