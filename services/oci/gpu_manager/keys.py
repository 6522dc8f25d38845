from __future__ import annotations

import logging
from dataclasses import dataclass, field

import paramiko

from services.oci.gpu_manager.constants import DEFAULT_SSH_KEY_BITS

logger = logging.getLogger("oci_gpu_manager")


@dataclass(frozen=True)
class KeyPair:
    """
    Ephemeral SSH key pair, held in memory for a single run.

    Attributes:
        public_key: OpenSSH authorized_keys line injected into instance metadata.
        private_key: paramiko key used to authenticate the SSH session.
    """

    public_key: str
    private_key: paramiko.PKey = field(repr=False)


def generate_key_pair(
    bits: int = DEFAULT_SSH_KEY_BITS, comment: str = "gha-gpu-runner"
) -> KeyPair:
    """
    Generate a fresh RSA key pair in memory.

    Nothing is written to disk. Failures in the crypto backend propagate.
    """
    key = paramiko.RSAKey.generate(bits)
    public_key = f"{key.get_name()} {key.get_base64()} {comment}"
    logger.debug("Generated ephemeral %s key bits=%s", key.get_name(), bits)
    return KeyPair(public_key=public_key, private_key=key)
