from Crypto.Hash import keccak
import rlp


def keccak_256(x: bytes) -> bytes:
    return keccak.new(digest_bits=256, data=x).digest()


def rlp_encode_list(items: list) -> bytes:
    return rlp.encode(items)


EMPTY_CODE_HASH = keccak_256(b"")


def compute_contract_address(sender: bytes, nonce: int) -> bytes:
    # CREATE: keccak256(rlp([sender, nonce]))[12:]
    return keccak_256(rlp_encode_list([bytes(sender), nonce]))[12:]


def compute_create2_contract_address(sender: bytes, salt: int, init_code: bytes) -> bytes:
    # CREATE2: keccak256(0xff ++ sender ++ salt ++ keccak256(init_code))[12:]
    preimage = b"\xff" + bytes(sender) + salt.to_bytes(32, byteorder='big') + keccak_256(init_code)
    return keccak_256(preimage)[12:]


def encode_hex(v: bytes) -> str:
    return '0x' + v.hex()


def decode_hex(v: str) -> bytes:
    if v.startswith('0x'):
        v = v[2:]
    return bytes.fromhex(v)
