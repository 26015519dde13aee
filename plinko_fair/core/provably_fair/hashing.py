"""
Hash primitives shared by the hash chain and the per-user rounds.

    generate_hash(prev)                 SHA256(prev), next link of a chain
    salt_hash(game, hash, salt)         HMAC(key=hash, msg="game:salt"), public commitment
    salt_with_client_seed(hash, seed)   HMAC(key=hash, msg=seed), per-roll hash
    salt_with_new_seed(seed, round_id)  HMAC(key=seed, msg=round_id), secret round seed
"""

import hashlib
import hmac


def _hmac_hex(key: str, message: str) -> str:
    return hmac.new(
        key.encode("utf-8"), message.encode("utf-8"), hashlib.sha256
    ).hexdigest()


def generate_hash(game_name: str, previous_hash: str) -> str:
    """
    Next link of a hash chain. ``game_name`` does not enter the digest; a
    chain is tied to its game through its root seed.
    """
    return hashlib.sha256(previous_hash.encode("utf-8")).hexdigest()


def salt_hash(game_name: str, hash_hex: str, salt: str) -> str:
    """Public commitment for a chain link. The game name separates domains."""
    return _hmac_hex(hash_hex, f"{game_name}:{salt}")


def salt_with_client_seed(hash_hex: str, client_seed: str) -> str:
    return _hmac_hex(hash_hex, client_seed)


def salt_with_new_seed(server_seed: str, round_id: str) -> str:
    return _hmac_hex(server_seed, round_id)


def noncify(client_seed: str, nonce: int) -> str:
    return f"{client_seed} - {nonce}"


def roll_number(hash_hex: str) -> float:
    """
    Roll a number between 0 and 99.99 from a hash.

    Reads 5 hex digits at a time and skips windows >= 10^6 so the kept value
    is uniform over 0..999999, then keeps its last four digits. If the hash
    runs out, the roll defaults to the highest value.
    """
    index = 0
    lucky = int(hash_hex[0:5], 16)

    while lucky >= 10**6:
        index += 1
        if index * 5 + 5 > len(hash_hex):
            lucky = 9999
            break
        lucky = int(hash_hex[index * 5:index * 5 + 5], 16)

    lucky %= 10**4
    return lucky / 10**2
