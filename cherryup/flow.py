"""Branch flow parsing.

A branch flow is the promotion chain typed by the operator, e.g. `"main -> dev -> release"`.
Several independent chains may be given separated by commas:

    parse_flow("a -> b -> c, x -> y")
    # [a -> b, b -> c, x -> y]

Each pair of adjacent names inside one chain becomes one `BranchTransition` (a "hop").
Names are whitespace-trimmed and empty names are dropped, so a chain with fewer than two
names (a bare name, an empty string, `"a ->"`) contributes nothing.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class BranchTransition:
    from_branch: str
    to_branch: str

    def __str__(self) -> str:
        return f"{self.from_branch} -> {self.to_branch}"


BranchFlow = list[BranchTransition]


def parse_flow(flow: str) -> BranchFlow:
    transitions: BranchFlow = []
    for chain in flow.split(","):
        names = [name.strip() for name in chain.split("->")]
        names = [name for name in names if name]
        transitions.extend(BranchTransition(a, b) for a, b in zip(names, names[1:]))
    return transitions
