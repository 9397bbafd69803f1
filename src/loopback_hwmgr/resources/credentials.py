"""
BMC credential objects.

The catalog stores BMC username and password base64 encoded.
They are decoded here and stored as raw bytes in a credential object named
after the node.
"""

from __future__ import annotations

import base64
import binascii
import logging

from loopback_hwmgr.core.errors import DecodeError, HwMgrError
from loopback_hwmgr.core.types import CredentialObject
from loopback_hwmgr.resources.base import CredentialClient
from loopback_hwmgr.resources.ops import delete_ignore_not_found

LOGGER = logging.getLogger(__name__)


def bmc_secret_name(node: str) -> str:
    return f"{node}-bmc-secret"


def decode_credential(value: str, node: str, field_name: str) -> bytes:
    """Decode a standard alphabet base64 string, rejecting invalid input."""
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as err:
        raise DecodeError(
            f"failed to decode {field_name} base64 string ({value}): {err}",
            node=node,
            operation="decode bmc credentials",
        ) from err


def create_bmc_secret(
    client: CredentialClient,
    node: str,
    username_base64: str,
    password_base64: str,
) -> CredentialObject:
    """Create or update the bmc secret for a node."""
    LOGGER.info(f"Creating bmc-secret for node {node}")

    secret = CredentialObject(
        name=bmc_secret_name(node),
        data={
            "username": decode_credential(username_base64, node, "username"),
            "password": decode_credential(password_base64, node, "password"),
        },
    )

    try:
        return client.create_or_update(secret)
    except HwMgrError as err:
        raise err.with_context(node=node, operation="create bmc-secret") from err


def delete_bmc_secret(client: CredentialClient, node: str) -> None:
    LOGGER.info(f"Deleting bmc-secret for node {node}")
    try:
        delete_ignore_not_found(client, bmc_secret_name(node))
    except HwMgrError as err:
        raise err.with_context(node=node, operation="delete bmc-secret") from err
