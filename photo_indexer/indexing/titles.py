from datetime import datetime
from typing import List, Optional

from ..models import Location, Tag


def synthesize_title(location: Optional[Location], tags: List[Tag], taken_at: Optional[datetime]) -> str:
    """
    Fallback title for a photo without one. First match wins:

      1. "<location name> / <country> / <year>"
      2. "<city> / <country> / <year>"
      3. "<county> / <country> / <year>"
      4. "<First Tag> / <year>"
      5. "Unknown / <year>"
    """
    year = taken_at.strftime("%Y") if taken_at else "Unknown"

    if location is not None:
        for place in (location.name, location.city, location.county):
            if place:
                return f"{place} / {location.country} / {year}"

    if tags:
        return f"{tags[0].label.title()} / {year}"

    return f"Unknown / {year}"
