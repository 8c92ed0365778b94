#!/usr/bin/env python3
"""
gkestack command line.

    gkestack list
    gkestack render [--group network_cluster] [--output build]
    gkestack check build/network_cluster [--policy private_cluster]
    gkestack plan|apply|destroy --group network_cluster
    gkestack verify --group network_cluster
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import List, Optional

from gkestack.evaluation.terraform_runner import TerraformError, TerraformRunner
from gkestack.evaluation.validation import POLICIES, PolicyOptions, validate_group
from gkestack.generation.renderer import GROUP_FILE, GroupRenderer, load_invariants
from gkestack.generation.terraform.providers.gcp.group_bank import load_templates
from gkestack.generation.terraform.registry import DeclarationRegistry
from gkestack.generation.yaml_config import ConfigError, StackConfig, get_stack_config

logger = logging.getLogger("gkestack")

PROVIDER = "gcp"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gkestack", description="Secure GKE declaration groups.")
    parser.add_argument("--config", help="Path to stack_config.yaml (default: $GKESTACK_CONFIG or packaged).")
    parser.add_argument("--log-level", help="Override settings.log_level (DEBUG, INFO, ...).")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List groups and resource templates.")

    render = sub.add_parser("render", help="Render groups as Terraform JSON.")
    render.add_argument("--group", action="append", dest="groups", help="Group to render (repeatable).")
    render.add_argument("--output", help="Output directory (default: settings.output.path).")

    check = sub.add_parser("check", help="Check a source against invariants and policies.")
    check.add_argument("source", help="Rendered group dir, .tf.json, .tf file/dir, or .tfstate.")
    check.add_argument("--policy", action="append", dest="policies", choices=sorted(POLICIES),
                       help="Policy to run (repeatable; default: all).")
    check.add_argument("--no-policies", action="store_true", help="Only check invariants.")
    check.add_argument("--invariants", help=f"Directory holding a {GROUP_FILE} whose invariants to check.")
    check.add_argument("--json", action="store_true", help="Print the result as JSON.")

    for name, help_text in (
        ("plan", "Render a group and run terraform plan."),
        ("apply", "Render a group and run terraform apply."),
        ("destroy", "Run terraform destroy for a rendered group."),
        ("verify", "Pull state for a group and check it."),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--group", required=True, help="Group name.")
        cmd.add_argument("--output", help="Output directory (default: settings.output.path).")

    return parser


def _configure_logging(config: Optional[StackConfig], override: Optional[str]) -> None:
    level_name = (override or (config.settings.log_level if config else "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _output_dir(args: argparse.Namespace, config: StackConfig) -> Path:
    return Path(args.output or config.settings.output.path)


def _tfvars(config: StackConfig) -> dict:
    return {"project_id": config.project.id}


def cmd_list(registry: DeclarationRegistry) -> int:
    for name in registry.get_group_names(PROVIDER):
        state = "enabled" if registry.config.is_group_enabled(name) else "disabled"
        print(f"group {name} ({state})")
    for key, template in sorted(load_templates().items()):
        requires = ", ".join(template.requires) or "-"
        print(f"template {key}: {template.kind} (requires: {requires})")
    return 0


def cmd_render(args: argparse.Namespace, registry: DeclarationRegistry) -> int:
    config = registry.config
    renderer = GroupRenderer(_output_dir(args, config))
    if args.groups:
        groups = [registry.build_group(PROVIDER, name) for name in args.groups]
    else:
        groups = registry.build_enabled_groups(PROVIDER)
    for group in groups:
        for path in renderer.render(group, _tfvars(config)):
            print(path)
    return 0


def cmd_check(args: argparse.Namespace, config: StackConfig) -> int:
    source = Path(args.source)
    invariants = None
    invariants_dir = Path(args.invariants) if args.invariants else None
    if invariants_dir is None and source.is_dir() and (source / GROUP_FILE).exists():
        invariants_dir = source
    if invariants_dir is not None:
        invariants = load_invariants(invariants_dir)

    policies: Optional[List[str]] = [] if args.no_policies else args.policies
    result = validate_group(source, invariants, policies, PolicyOptions.from_config(config))
    if args.json:
        print(json.dumps(asdict(result), indent=2, default=str))
    else:
        print(result.summary())
    return 0 if result.passed else 1


def cmd_engine(args: argparse.Namespace, registry: DeclarationRegistry) -> int:
    config = registry.config
    renderer = GroupRenderer(_output_dir(args, config))
    group_dir = renderer.group_dir(args.group)

    if args.command in ("plan", "apply"):
        renderer.render(registry.build_group(PROVIDER, args.group), _tfvars(config))
    elif not group_dir.exists():
        logger.error(f"Group {args.group} has not been rendered into {group_dir}")
        return 1

    runner = TerraformRunner(group_dir, binary=config.settings.terraform.binary)
    try:
        if args.command != "verify":
            runner.init()
        if args.command == "plan":
            runner.plan()
        elif args.command == "apply":
            runner.apply(str(runner.plan().name))
        elif args.command == "destroy":
            runner.destroy()
            return 0
        if args.command in ("apply", "verify"):
            state = runner.state_pull()
            result = validate_group(state, load_invariants(group_dir), None, PolicyOptions.from_config(config))
            print(result.summary())
            return 0 if result.passed else 1
    except TerraformError as e:
        logger.error(str(e))
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = get_stack_config(args.config)
    except (ConfigError, FileNotFoundError) as e:
        _configure_logging(None, args.log_level)
        logger.error(f"Configuration error: {e}")
        return 2
    _configure_logging(config, args.log_level)

    try:
        if args.command == "check":
            return cmd_check(args, config)
        registry = DeclarationRegistry(config)
        if args.command == "list":
            return cmd_list(registry)
        if args.command == "render":
            return cmd_render(args, registry)
        return cmd_engine(args, registry)
    except KeyError as e:
        logger.error(str(e))
        return 2
    except FileNotFoundError as e:
        # Missing group.json for --invariants or a partially rendered group.
        logger.error(str(e))
        return 2


if __name__ == "__main__":
    sys.exit(main())
