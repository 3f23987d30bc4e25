import bcrypt

from accounts.credentials import is_password_too_long


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=10)).decode(
        "utf-8"
    )


def verify_password(plain_password: str, password_hash: str) -> bool:
    # no stored password is longer than bcrypt accepts
    if is_password_too_long(plain_password):
        return False
    return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
