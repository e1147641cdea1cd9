import hashlib
import bcrypt

# bcrypt only looks at 72 bytes, so hash a fixed-size digest of the password
def _digest(password: str) -> bytes:
    return hashlib.sha256(password.encode("utf-8")).digest()

def hash_password(password:str) -> str:
    hashed = bcrypt.hashpw(_digest(password), bcrypt.gensalt())
    return hashed.decode()

def verify_password(password:str, hashed_password:str) -> bool:
    return bcrypt.checkpw(_digest(password), hashed_password.encode())
