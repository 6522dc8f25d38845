from __future__ import annotations

DEFAULT_ARCH = "x86"
DEFAULT_AVAILABILITY_DOMAIN = "tdbQ:US-ASHBURN-AD-1"
DEFAULT_COMPARTMENT_ID = (
    "ocid1.compartment.oc1..aaaaaaaaczejzfg7ixiqrl7r4jr5dohrtxfpuhdinrq4okj67hskmhgglyfq"
)
# TODO: pick the subnet from the availability domain instead of a fixed default
DEFAULT_SUBNET_ID = (
    "ocid1.subnet.oc1.iad.aaaaaaaaff7mqwjlremjpiq72i2wjgfjfjz2dhymvtdybhu5mdaikovb67ka"
)
DEFAULT_SHAPE = "VM.GPU.A10.1"
DEFAULT_BOOT_VOLUME_SIZE_IN_GBS = 400

DISPLAY_NAME_PREFIX = "kubeflow-gha-gpu-runner"
SSH_AUTHORIZED_KEYS_METADATA = "ssh_authorized_keys"

DEFAULT_SSH_USER = "ubuntu"
DEFAULT_SSH_PORT = 22
DEFAULT_SSH_KEY_BITS = 4096
DEFAULT_SSH_CONNECT_TIMEOUT_SEC = 10.0
DEFAULT_SSH_MAX_ATTEMPTS = 30
DEFAULT_SSH_RETRY_DEADLINE_SEC = 600.0
DEFAULT_SSH_BACKOFF_SEC = 10.0

# Instance needs a moment to materialize before the first describe call
DEFAULT_READY_GRACE_SEC = 30.0
DEFAULT_READY_TIMEOUT_SEC = 900.0
DEFAULT_READY_POLL_SEC = 10.0

JITCONFIG_ENV = "ACTIONS_RUNNER_INPUT_JITCONFIG"
JITCONFIG_PLACEHOLDER = "${ACTIONS_RUNNER_INPUT_JITCONFIG}"

# Bootstrap sequence for the actions runner baked into the GPU image
RUNNER_COMMANDS: tuple[str, ...] = (
    "tar -zxf /opt/runner-cache/actions-runner-linux-*.tar.gz",
    "rm -rf \\$HOME",
    "sudo chown -R 1000:1000 /etc/skel/",
    "mv /etc/skel/.cargo /home/ubuntu/",
    "mv /etc/skel/.nvm /home/ubuntu/",
    "mv /etc/skel/.rustup /home/ubuntu/",
    "mv /etc/skel/.dotnet /home/ubuntu/",
    "mv /etc/skel/.composer /home/ubuntu/",
    "sudo setfacl -m u:ubuntu:rw /var/run/docker.sock",
    "sudo sysctl fs.inotify.max_user_instances=1280",
    "sudo sysctl fs.inotify.max_user_watches=655360",
    "export PATH=$PATH:/home/ubuntu/.local/bin && export HOME=/home/ubuntu "
    "&& export NVM_DIR=/home/ubuntu/.nvm "
    f'&& bash -x /home/ubuntu/run.sh --jitconfig "{JITCONFIG_PLACEHOLDER}"',
)
