"""Hand-written bodies for schemas that generic emission cannot express well.

The override table is consulted by name before generic emission: a component
whose type name is a key of :data:`OVERRIDES` is emitted from the source below
instead of from its schema, and references to it use the class directly.
"""

import ast
import textwrap
from dataclasses import dataclass, field

__all__ = ['Override', 'OVERRIDES', 'get_override']


@dataclass(frozen=True)
class Override:
    """A hand-written declaration.

    Attributes:
        name: The class name the declaration defines.
        source: Python source of the declaration.
        imports: Imports the source needs, as module -> names.
        requires: Other overrides that must be declared first.
    """

    name: str
    source: str
    imports: dict[str, set[str]] = field(default_factory=dict)
    requires: tuple[str, ...] = ()

    def to_ast(self) -> list[ast.stmt]:
        return ast.parse(textwrap.dedent(self.source)).body


IPV4_NET = Override(
    name='Ipv4Net',
    imports={'ipaddress': {'IPv4Network'}, 'pydantic': {'RootModel'}},
    source='''
    class Ipv4Net(RootModel[IPv4Network]):
        """An IPv4 subnetwork, including the address and network mask.

        Example: ``192.168.1.0/24``.
        """

        def __str__(self) -> str:
            return str(self.root)

        @classmethod
        def parse(cls, text: str) -> 'Ipv4Net':
            return cls(IPv4Network(text.strip()))

        def is_private(self) -> bool:
            """Return whether the subnetwork is in an RFC 1918 private range."""
            return self.root.network_address.is_private
    ''',
)

IPV6_NET = Override(
    name='Ipv6Net',
    imports={'ipaddress': {'IPv6Network'}, 'pydantic': {'RootModel'}, 'typing': {'ClassVar'}},
    source='''
    class Ipv6Net(RootModel[IPv6Network]):
        """An IPv6 subnetwork, including the address and network mask.

        Example: ``fd12:3456::/64``.
        """

        VPC_IPV6_PREFIX_LENGTH: ClassVar[int] = 48
        VPC_SUBNET_IPV6_PREFIX_LENGTH: ClassVar[int] = 64

        def __str__(self) -> str:
            return str(self.root)

        @classmethod
        def parse(cls, text: str) -> 'Ipv6Net':
            return cls(IPv6Network(text.strip()))

        def is_unique_local(self) -> bool:
            """Return whether the subnetwork is in the RFC 4193 ``fd00::/8`` range."""
            return self.root.network_address.packed[0] == 0xFD

        def is_vpc_prefix(self) -> bool:
            return self.is_unique_local() and self.root.prefixlen == self.VPC_IPV6_PREFIX_LENGTH

        def is_vpc_subnet(self, vpc_prefix: 'Ipv6Net') -> bool:
            """Return whether the subnetwork is a valid VPC subnet of ``vpc_prefix``."""
            return (
                self.is_unique_local()
                and self.root.subnet_of(vpc_prefix.root)
                and self.root.prefixlen == self.VPC_SUBNET_IPV6_PREFIX_LENGTH
            )
    ''',
)

IP_NET = Override(
    name='IpNet',
    imports={'ipaddress': {'ip_network', 'IPv4Network'}, 'pydantic': {'RootModel'}},
    requires=('Ipv4Net', 'Ipv6Net'),
    source='''
    class IpNet(RootModel[Ipv4Net | Ipv6Net]):
        """An IPv4 or IPv6 subnetwork."""

        def __str__(self) -> str:
            return str(self.root)

        @classmethod
        def parse(cls, text: str) -> 'IpNet':
            network = ip_network(text.strip())
            if isinstance(network, IPv4Network):
                return cls(Ipv4Net(network))
            return cls(Ipv6Net(network))

        def is_v4(self) -> bool:
            return isinstance(self.root, Ipv4Net)
    ''',
)

OVERRIDES: dict[str, Override] = {
    override.name: override for override in (IPV4_NET, IPV6_NET, IP_NET)
}


def get_override(name: str | None) -> Override | None:
    if name is None:
        return None
    return OVERRIDES.get(name)
