"""OpenVPN client administration on top of an easy-rsa PKI."""

__version__ = "1.0.0"
