"""CSV export of registrations for the admin dashboard."""
import csv
import io
from typing import List, Optional

from shared.models import FamilyMember

EXPORT_FILENAME = "madrigal-family-registrations.csv"
EXPORT_HEADER = ["Name", "Email", "Phone", "Relationship", "Connected Through", "Generation", "Branch", "Attendees"]


def filter_by_generation(members: List[FamilyMember], generation: Optional[int]) -> List[FamilyMember]:
    if generation is None:
        return list(members)
    return [m for m in members if m.generation == generation]


def members_to_csv(members: List[FamilyMember]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(EXPORT_HEADER)
    for m in members:
        writer.writerow([
            m.name,
            m.email,
            m.phone,
            m.relationship_type,
            m.connected_through,
            m.generation,
            m.family_branch,
            m.attendees,
        ])
    return buffer.getvalue()
