from __future__ import annotations

import bcrypt


def hash_password(password: str) -> str:
    """Gera hash bcrypt para guardar no cadastro do usuário."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # hash corrompido/fora do formato bcrypt
        return False
