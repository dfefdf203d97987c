"""Cloud provider abstraction and the Azure implementation."""

from azmigrate.cloud.cloud_api import CloudApi, CloudApiError
from azmigrate.cloud.specs import (
    DiskAttachmentSpec,
    IpConfigChanges,
    LoadBalancerSpec,
    NicSpec,
    PublicAddressSpec,
    VmSpec,
)

# Note: AzureApi is NOT imported here so the core can be used without it.
# Import it directly from azmigrate.cloud.azure.api when needed.

__all__ = [
    # Cloud API
    "CloudApi",
    "CloudApiError",
    # Create specs
    "DiskAttachmentSpec",
    "IpConfigChanges",
    "LoadBalancerSpec",
    "NicSpec",
    "PublicAddressSpec",
    "VmSpec",
]
