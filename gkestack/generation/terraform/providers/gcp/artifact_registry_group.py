from __future__ import annotations

from gkestack.generation.terraform.providers.gcp import compositions
from gkestack.generation.terraform.providers.gcp.group_bank import GCPDeclarationBank

GROUP_NAME = compositions.ARTIFACT_REGISTRY.name
_BANK = GCPDeclarationBank(compositions.ARTIFACT_REGISTRY)


def build_group(config):
    return _BANK.build_group(config)
