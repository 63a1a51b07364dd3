import hmac, hashlib, secrets


def gen_numeric_code(n: int) -> str:
    return str(secrets.randbelow(10 ** n)).zfill(n)


def hmac_hash(phone: str, code: str, secret: str) -> str:
    key = secret.encode("utf-8")
    msg = f"{phone}:{code}".encode("utf-8")
    return hmac.new(key, msg, hashlib.sha256).hexdigest()


def hashes_match(a: str, b: str) -> bool:
    return hmac.compare_digest(a or "", b or "")
