"""Aggregates and the connected-through tree over the member list."""
from collections import defaultdict
from typing import Dict, List

from shared.models import FamilyMember, FamilyStats, FamilyTree, TreeLink, TreeNode


def compute_stats(members: List[FamilyMember]) -> FamilyStats:
    by_generation: Dict[int, int] = defaultdict(int)
    by_branch: Dict[str, int] = defaultdict(int)
    total_attendees = 0
    for member in members:
        total_attendees += member.attendees or 0
        by_generation[member.generation] += 1
        by_branch[member.family_branch or "Unknown"] += 1

    return FamilyStats(
        total_members=len(members),
        total_attendees=total_attendees,
        by_generation=dict(by_generation),
        by_branch=dict(by_branch),
    )


def build_tree(members: List[FamilyMember]) -> FamilyTree:
    """Link each member to the first member named in its connected_through.

    Names are matched exactly. Unmatched names leave the member as an orphan;
    self references and cycles are kept as-is.
    """
    first_by_name: Dict[str, FamilyMember] = {}
    for member in members:
        first_by_name.setdefault(member.name, member)

    nodes = [
        TreeNode(
            id=m.id,
            name=m.name,
            photo=m.photo,
            generation=m.generation,
            relationship_type=m.relationship_type,
            connected_through=m.connected_through,
            family_branch=m.family_branch,
            attendees=m.attendees,
        )
        for m in members
    ]

    links = []
    for member in members:
        if not member.connected_through:
            continue
        parent = first_by_name.get(member.connected_through)
        if parent is not None:
            links.append(TreeLink(source=parent.id, target=member.id))

    return FamilyTree(nodes=nodes, links=links)


def group_by_generation(members: List[FamilyMember]) -> Dict[int, List[FamilyMember]]:
    groups: Dict[int, List[FamilyMember]] = defaultdict(list)
    for member in members:
        groups[member.generation].append(member)
    return {generation: groups[generation] for generation in sorted(groups)}
