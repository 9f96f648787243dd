"""
Compute Provisioner
Collaborator boundary for machine creation. Machine shapes (size, image,
disks) belong to the injected factory; this layer only places declared
machines on their environment's subnets and collects the resulting ids.
"""

from typing import Callable

from errors import DependencyError
from models import ComputeHandle, Environment, MachineSpec, NetworkHandle

WINDOWS = "windows"
LINUX = "linux"

# create_vm(environment, machine, subnet_id) -> vm id
VmFactory = Callable[[Environment, MachineSpec, str], str]


class ComputeProvisioner:
    """Places declared machines using only its own environment's network output."""

    def __init__(self, create_vm: VmFactory):
        self.create_vm = create_vm

    def provision(self, environment: Environment, network: NetworkHandle) -> ComputeHandle:
        """
        Create every machine declared for the environment.

        Raises:
            DependencyError: a machine's subnet role was not provisioned
        """
        handle = ComputeHandle(environment=environment.name)

        for machine in environment.machines:
            subnet_id = network.subnet_ids.get(machine.subnet)
            if not subnet_id:
                raise DependencyError(
                    f"Machine '{machine.name}' in '{environment.name}' needs subnet role "
                    f"'{machine.subnet.value}', which has no provisioned id",
                    environment=environment.name,
                    subject=machine.name,
                    precondition="machine subnet produced by the network step",
                )

            vm_id = self.create_vm(environment, machine, subnet_id)
            if machine.os.lower() == WINDOWS:
                handle.windows_vm_ids.append(vm_id)
            else:
                handle.linux_vm_ids.append(vm_id)
            handle.location_by_vm[vm_id] = network.location

        if environment.machines:
            print(f"  ✓ {environment.name}: {len(environment.machines)} machines")
        return handle
