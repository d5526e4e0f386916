"""Cloud-init user-data for freshly created machines.

The bootstrap only creates the remote user and lets it log in with the
generated secret. Everything else happens later over SSH, once the
orchestrator has confirmed the credential is accepted.
"""

import yaml

CLOUD_CONFIG_HEADER = "#cloud-config\n"


def render_bootstrap_user_data(secret: str, user: str = "openclaw") -> str:
    """Render cloud-config that creates ``user`` with ``secret`` as password.

    Args:
        secret: Remote-access secret
        user: Remote login user

    Returns:
        cloud-config document
    """
    document = {
        "users": [
            "default",
            {
                "name": user,
                "groups": ["sudo"],
                "shell": "/bin/bash",
                "sudo": "ALL=(ALL) NOPASSWD:ALL",
                "lock_passwd": False,
            },
        ],
        "chpasswd": {
            "expire": False,
            "users": [{"name": user, "password": secret, "type": "text"}],
        },
        "ssh_pwauth": True,
    }
    return CLOUD_CONFIG_HEADER + yaml.safe_dump(document, sort_keys=False)
