#!/usr/bin/env python3
"""
Hub-and-Spoke Network Provisioner - CLI Entry Point

Usage:
    python cli.py --phase validate --environments-file config/environments.yaml
    python cli.py --phase apply --environments-file config/environments.yaml --subscription <id>
"""

import argparse
import sys

from auth import AuthConfig
from errors import ProvisioningError
from models import ExecutionMode
from network import load_handles
from orchestrator import ProvisioningOrchestrator
from registry import load_registry
from reporting import export_plan, print_plan, print_summary, print_topology, save_results


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Hub-and-Spoke Network Provisioner',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Check configuration (CIDRs, subnets, capabilities, timezones) without calling Azure
  hubspoke --phase validate --environments-file config/environments.yaml

  # Show the ordered provisioning plan and export it
  hubspoke --phase plan --environments-file config/environments.yaml --output plan.yaml

  # Resolve peerings and route tables from recorded network outputs
  hubspoke --phase resolve --environments-file config/environments.yaml --handles networks.yaml

  # Provision everything
  hubspoke --phase apply --environments-file config/environments.yaml --subscription 00000000-0000-0000-0000-000000000000
        """
    )

    parser.add_argument(
        '--mode',
        choices=['local', 'pipeline'],
        default='local',
        help='Execution mode (default: local)'
    )

    parser.add_argument(
        '--subscription',
        help='Azure subscription ID (default: AZURE_SUBSCRIPTION_ID)'
    )

    parser.add_argument(
        '--phase',
        choices=['validate', 'plan', 'resolve', 'apply'],
        required=True,
        help='Phase to execute'
    )

    parser.add_argument(
        '--environments-file',
        default='config/environments.yaml',
        help='YAML file with environment configurations (default: config/environments.yaml)'
    )

    parser.add_argument(
        '--handles',
        help='YAML file with network outputs (resolve phase)'
    )

    parser.add_argument(
        '--output',
        help='Write the plan/topology (YAML) or apply results (JSON) to this file'
    )

    parser.add_argument(
        '--parallel',
        type=int,
        default=3,
        help='Maximum concurrent steps per layer (default: 3, use 1 for sequential)'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Validate configuration and print the plan without executing'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )

    return parser.parse_args(argv)


def get_execution_mode(mode_str: str) -> ExecutionMode:
    """Convert mode string to ExecutionMode enum."""
    mode_map = {
        'local': ExecutionMode.LOCAL,
        'pipeline': ExecutionMode.PIPELINE,
    }
    return mode_map.get(mode_str, ExecutionMode.LOCAL)


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    try:
        registry = load_registry(args.environments_file)
    except FileNotFoundError:
        print(f"Error: Environments file not found: {args.environments_file}")
        sys.exit(1)
    except ProvisioningError as e:
        print(f"Error loading environments file: {e}")
        sys.exit(1)

    if args.verbose:
        print(f"Loaded {len(registry)} environments from {args.environments_file}")

    auth = AuthConfig(
        mode=get_execution_mode(args.mode),
        subscription_id=args.subscription,
    )

    orchestrator = ProvisioningOrchestrator(
        auth_config=auth,
        registry=registry,
        max_parallel=args.parallel,
    )

    try:
        orchestrator.validate()
    except ProvisioningError as e:
        print(f"✗ Configuration error: {e}")
        sys.exit(1)

    if args.phase == 'validate':
        print(f"✓ Configuration valid: {', '.join(registry.names())}")
        sys.exit(0)

    if args.phase == 'plan' or args.dry_run:
        plan = orchestrator.build_plan()
        print_plan(plan)
        if args.output:
            export_plan(plan, args.output)
            print(f"\n✓ Plan exported to {args.output}")
        sys.exit(0)

    if args.phase == 'resolve':
        if not args.handles:
            print("Error: resolve phase requires --handles")
            sys.exit(1)
        try:
            handles = load_handles(args.handles)
        except FileNotFoundError:
            print(f"Error: Handles file not found: {args.handles}")
            sys.exit(1)

        try:
            topology = orchestrator.resolve(handles)
        except ProvisioningError as e:
            print(f"✗ {type(e).__name__}: {e}")
            sys.exit(1)

        print_topology(topology)
        if args.output:
            export_plan(orchestrator.build_plan(), args.output, topology)
            print(f"\n✓ Topology exported to {args.output}")
        sys.exit(0)

    # Apply
    if not auth.subscription_id:
        print("Error: apply requires --subscription or AZURE_SUBSCRIPTION_ID")
        sys.exit(1)

    try:
        summary = orchestrator.apply()
    except ProvisioningError as e:
        print(f"\n✗ Aborted - {type(e).__name__}: {e}")
        if e.summary:
            print_summary(e.summary)
            if args.output and save_results(e.summary, args.output):
                print(f"✓ Partial results saved to {args.output}")
        sys.exit(1)

    print_summary(summary)
    if args.output:
        if save_results(summary, args.output):
            print(f"✓ Results saved to {args.output}")

    # Exit code for CI/CD
    sys.exit(0 if summary['failed'] == 0 and summary['skipped'] == 0 else 1)


if __name__ == "__main__":
    main()
