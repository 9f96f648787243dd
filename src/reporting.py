"""
Reporting Module
Console summaries and file export of plans, topology and run results.
"""

import json
from typing import Dict

import yaml

from models import TopologyResult
from plan import ProvisioningPlan


def export_plan(plan: ProvisioningPlan, output_file: str, topology: TopologyResult = None) -> str:
    """
    Write the plan (and optionally a resolved topology) to YAML.

    Args:
        plan: Provisioning plan
        output_file: Target path
        topology: Optional resolver output to include

    Returns:
        The output path
    """
    document = {'plan': plan.to_dict()}
    if topology is not None:
        document['topology'] = topology.to_dict()

    with open(output_file, 'w') as f:
        yaml.safe_dump(document, f, default_flow_style=False, sort_keys=False)

    return output_file


def save_results(summary: Dict, output_file: str) -> bool:
    """
    Save run results to a JSON file.

    Returns:
        True if successful, False otherwise
    """
    try:
        with open(output_file, 'w') as f:
            json.dump(summary, f, indent=2, default=str)
        return True
    except OSError as e:
        print(f"Results save error: {str(e)}")
        return False


def print_plan(plan: ProvisioningPlan):
    """Print the ordered plan grouped by layer."""
    print(f"\n{'=' * 80}")
    print("PROVISIONING PLAN")
    print(f"{'=' * 80}")
    for layer, steps in plan.layers():
        print(f"Layer {layer.value}: {layer.name.lower()}")
        for step in steps:
            deps = f"  (after {', '.join(step.depends_on)})" if step.depends_on else ""
            print(f"  - {step.key}{deps}")
    print(f"{'=' * 80}")


def print_topology(topology: TopologyResult):
    """Print the resolved peerings, route tables and associations."""
    print(f"\n{'=' * 80}")
    print("RESOLVED TOPOLOGY")
    print(f"{'=' * 80}")
    print(f"Peerings: {len(topology.peerings)}")
    for edge in topology.peerings:
        flags = []
        if edge.allow_gateway_transit:
            flags.append(f"{edge.local}: allow_gateway_transit")
        if edge.use_remote_gateway:
            flags.append(f"{edge.remote}: use_remote_gateway")
        print(f"  {edge.local} <-> {edge.remote}" + (f"  [{'; '.join(flags)}]" if flags else ""))

    print(f"Route tables: {len(topology.route_tables)}")
    for table in topology.route_tables:
        print(f"  {table.name} ({table.environment})")
        for route in table.routes:
            print(f"    {route.address_prefix} -> {route.next_hop_type.value}  ({route.name})")

    print(f"Associations: {len(topology.associations)}")
    for association in topology.associations:
        print(f"  {association.environment}/{association.subnet_name} -> {association.route_table}")
    print(f"{'=' * 80}")


def print_summary(summary: Dict):
    """Print a formatted run summary to console."""
    print(f"\n{'=' * 80}")
    print("RUN SUMMARY")
    print(f"{'=' * 80}")
    print(f"Phase: {summary.get('phase', 'unknown')}")
    if summary.get('aborted'):
        print(f"Aborted: {summary['aborted']}")
    print(f"Total: {summary.get('total_steps', 0)}")
    print(f"Succeeded: {summary.get('succeeded', 0)}")
    print(f"Failed: {summary.get('failed', 0)}")
    print(f"Skipped: {summary.get('skipped', 0)}")
    print(f"Duration: {summary.get('duration_seconds', 0):.2f}s")
    for result in summary.get('results', []):
        if result['status'] != 'SUCCEEDED':
            print(f"  ✗ {result['key']}: {result['status']} - {result['message']}")
    print(f"{'=' * 80}")
