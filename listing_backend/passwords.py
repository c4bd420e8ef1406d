# listing_backend/passwords.py
# Salted PBKDF2 password hashing (stored as "pbkdf2_sha256$<iterations>$<salt>$<hex>")

import hashlib
import secrets

ALGORITHM = "pbkdf2_sha256"
ITERATIONS = 260_000


def hash_password(password: str, *, salt: str = None, iterations: int = ITERATIONS) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations).hex()
    return f"{ALGORITHM}${iterations}${salt}${digest}"


def verify_password(password: str, password_hash: str) -> bool:
    try:
        algorithm, iterations, salt, expected = password_hash.split("$")
    except (AttributeError, ValueError):
        return False
    if algorithm != ALGORITHM or not iterations.isdigit():
        return False
    candidate = hash_password(password, salt=salt, iterations=int(iterations))
    return secrets.compare_digest(candidate.rsplit("$", 1)[1], expected)
