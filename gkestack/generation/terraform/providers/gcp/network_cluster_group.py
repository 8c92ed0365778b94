from __future__ import annotations

from gkestack.generation.terraform.providers.gcp import compositions
from gkestack.generation.terraform.providers.gcp.group_bank import GCPDeclarationBank

GROUP_NAME = compositions.NETWORK_CLUSTER.name
_BANK = GCPDeclarationBank(compositions.NETWORK_CLUSTER)


def build_group(config):
    return _BANK.build_group(config)
