from __future__ import annotations

import paramiko

from services.oci.gpu_manager import generate_key_pair


def test_generate_key_pair_produces_authorized_keys_line():
    key_pair = generate_key_pair(bits=2048)

    kind, blob, comment = key_pair.public_key.split(" ")
    assert kind == "ssh-rsa"
    assert blob == key_pair.private_key.get_base64()
    assert comment == "gha-gpu-runner"
    assert isinstance(key_pair.private_key, paramiko.RSAKey)
    assert key_pair.private_key.can_sign()


def test_generate_key_pair_is_fresh_each_call():
    first = generate_key_pair(bits=2048)
    second = generate_key_pair(bits=2048)

    assert first.public_key != second.public_key


def test_private_key_not_in_repr():
    key_pair = generate_key_pair(bits=2048)

    assert "private_key" not in repr(key_pair)
